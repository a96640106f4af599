"""FastAPI dependency injection providers.

The process-wide :class:`SteamClient` and :class:`CallGovernor` live on
``app.state`` (populated by the startup hook in ``api/main.py``).  These
providers take an :class:`~starlette.requests.HTTPConnection` so they resolve
for both HTTP and WebSocket routes.
"""

from __future__ import annotations

from starlette.requests import HTTPConnection

from steam_friend_graph.api.governor import CallGovernor
from steam_friend_graph.config.settings import Settings, get_settings
from steam_friend_graph.sampling.session import AcquisitionSession
from steam_friend_graph.steam.client import SteamClient


def get_steam_client(connection: HTTPConnection) -> SteamClient:
    """Return the shared Steam client stored on ``app.state``."""
    return connection.app.state.steam_client


def get_call_governor(connection: HTTPConnection) -> CallGovernor:
    """Return the shared call governor stored on ``app.state``."""
    return connection.app.state.call_governor


def new_acquisition_session(
    client: SteamClient,
    settings: Settings | None = None,
) -> AcquisitionSession:
    """Build a fresh session bound to *client* with configured limits."""
    settings = settings or get_settings()
    return AcquisitionSession(
        client,
        concurrency_limit=settings.concurrency_limit,
        operation_timeout=settings.operation_timeout_seconds,
    )
