"""ASGI application for the friend graph service.

:func:`create_app` wires the WebSocket endpoint, the health routes, CORS and
HTTP access logging, and registers startup/shutdown hooks that own the
process-wide :class:`SteamClient`, its :class:`CallGovernor` and the cache
eviction task.

Run it with::

    uvicorn steam_friend_graph.api.main:app
    steam-friend-graph --port 8080
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from steam_friend_graph import __version__
from steam_friend_graph.api.governor import CallGovernor
from steam_friend_graph.config.settings import Settings, get_settings
from steam_friend_graph.core.cache import CacheEvictionScheduler
from steam_friend_graph.core.logging_config import configure_logging, connection_id_var
from steam_friend_graph.steam.client import SteamClient

# Records emitted while the app is being built need a handler already;
# create_app() re-applies the configured level.
configure_logging("INFO")

logger = structlog.get_logger(__name__)


async def _log_http_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag the request with an ID and log its outcome and latency."""
    request_id = uuid.uuid4().hex
    connection_id_var.set(request_id)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        connection_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    started = time.perf_counter()
    response: Response | None = None
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.error("unhandled_exception", exc_info=exc)
        raise
    finally:
        status_code = response.status_code if response is not None else 500
        (logger.warning if status_code >= 400 else logger.info)(
            "request_complete",
            status_code=status_code,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )

    response.headers["X-Request-ID"] = request_id
    return response


async def _start_services(application: FastAPI, settings: Settings) -> None:
    state = application.state
    if state.steam_client is None:
        state.steam_client = SteamClient.from_settings(settings)
    client: SteamClient = state.steam_client

    state.call_governor = CallGovernor(client, max_calls=settings.max_remote_calls)
    state.eviction_scheduler = CacheEvictionScheduler(
        [client.url_cache, client.profile_cache],
        interval=settings.cache_sweep_interval_seconds,
    )
    state.eviction_scheduler.start()
    logger.info(
        "application_startup",
        log_level=settings.log_level,
        max_remote_calls=settings.max_remote_calls,
        url_cache_ttl=settings.url_cache_ttl_seconds,
    )


async def _stop_services(application: FastAPI, owns_client: bool) -> None:
    state = application.state
    if state.eviction_scheduler is not None:
        await state.eviction_scheduler.stop()
    if owns_client and state.steam_client is not None:
        await state.steam_client.aclose()
        state.steam_client = None
    logger.info("application_shutdown")


def create_app(steam_client: SteamClient | None = None) -> FastAPI:
    """Return a configured application.

    Args:
        steam_client: Client to serve with.  Tests inject one backed by a
            mock transport; when ``None`` the startup hook builds one from
            settings and the shutdown hook closes it.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description="One-hop Steam friend graphs over a WebSocket.",
        version=__version__,
        debug=settings.debug,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.middleware("http")(_log_http_request)

    from steam_friend_graph.api import websocket  # noqa: PLC0415
    from steam_friend_graph.api.routes import health as health_routes  # noqa: PLC0415

    application.include_router(websocket.router)
    application.include_router(health_routes.router)

    application.state.steam_client = steam_client
    application.state.call_governor = None
    application.state.eviction_scheduler = None
    owns_client = steam_client is None

    @application.on_event("startup")
    async def on_startup() -> None:
        await _start_services(application, settings)

    @application.on_event("shutdown")
    async def on_shutdown() -> None:
        await _stop_services(application, owns_client)

    @application.get("/health", tags=["system"])
    async def liveness() -> JSONResponse:
        """Process liveness.  Call accounting lives at ``/api/health``."""
        return JSONResponse({"status": "ok"})

    return application


app = create_app()
"""ASGI callable served by uvicorn."""
