"""Health check route handlers.

``GET /api/health``
    Liveness plus acquisition bookkeeping: the remote call counter, the
    configured ceiling, whether new sessions are admitted, and the current
    size of both caches.  Always returns HTTP 200; ``status`` is ``"ok"`` or
    ``"exhausted"`` once the call ceiling has been reached.

This endpoint is diagnostic and never calls the Steam Web API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from steam_friend_graph.api.dependencies import get_call_governor, get_steam_client
from steam_friend_graph.api.governor import CallGovernor
from steam_friend_graph.steam.client import SteamClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.get("/api/health")
async def health(
    client: SteamClient = Depends(get_steam_client),
    governor: CallGovernor = Depends(get_call_governor),
) -> dict:
    """Return process status and remote call accounting.

    Returns:
        ``{"status", "remote_calls", "max_remote_calls", "admitting",
        "url_cache_size", "profile_cache_size"}``.
    """
    admitting = governor.admits()
    return {
        "status": "ok" if admitting else "exhausted",
        "remote_calls": client.call_count,
        "max_remote_calls": governor.max_calls,
        "admitting": admitting,
        "url_cache_size": len(client.url_cache),
        "profile_cache_size": len(client.profile_cache),
    }
