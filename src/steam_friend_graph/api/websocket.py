"""WebSocket transport for friend graph acquisition.

Each connection gets its own :class:`AcquisitionSession` bound to the shared
:class:`SteamClient`.  Frames are handled one at a time in arrival order.

Endpoints::

    ping               -> "pong"
    generateGraphData  -> reset, expand(id), build_graph(...)
    generateLabels     -> resolve_profiles(), generate_labels(...)
    getFriendProfiles  -> friends_of(id) as {"friends": [...], "profile": {...}}

Application errors are returned as ``status=1`` frames and never close the
connection.  Connections opened after the remote call ceiling was reached
receive one error frame and are closed with code 1013 (try again later).
"""

from __future__ import annotations

import uuid
from typing import Any, Awaitable, Callable

import pydantic
import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from steam_friend_graph.analysis.graph import build_graph, generate_labels
from steam_friend_graph.api.dependencies import (
    get_call_governor,
    get_steam_client,
    new_acquisition_session,
)
from steam_friend_graph.api.governor import CallGovernor
from steam_friend_graph.api.protocol import RequestMessage, ResponseMessage
from steam_friend_graph.config.settings import Settings, get_settings
from steam_friend_graph.core.exceptions import (
    CallBudgetExceededError,
    SteamFriendGraphError,
)
from steam_friend_graph.core.logging_config import connection_id_var
from steam_friend_graph.sampling.session import AcquisitionSession
from steam_friend_graph.steam.client import SteamClient

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["graph"])

Handler = Callable[[str], Awaitable[Any]]

ENDPOINT_NOT_FOUND: str = "endpoint not found"


class SocketSession:
    """Dispatch request frames of one connection to its acquisition session.

    Args:
        session: The connection's :class:`AcquisitionSession`.
        governor: Admission control checked before each new traversal.
    """

    def __init__(self, session: AcquisitionSession, governor: CallGovernor) -> None:
        self._session = session
        self._governor = governor
        self._handlers: dict[str, Handler] = {
            "ping": self._ping,
            "generateGraphData": self._generate_graph_data,
            "generateLabels": self._generate_labels,
            "getFriendProfiles": self._get_friend_profiles,
        }

    @property
    def session(self) -> AcquisitionSession:
        return self._session

    async def handle(self, message: RequestMessage) -> ResponseMessage:
        """Run the handler for *message* and wrap its outcome in a response frame."""
        handler = self._handlers.get(message.endpoint)
        if handler is None:
            logger.warning("unknown_endpoint", endpoint=message.endpoint)
            return ResponseMessage.error(message.endpoint, ENDPOINT_NOT_FOUND)

        logger.info("handling", endpoint=message.endpoint, id=message.id)
        try:
            data = await handler(message.id)
        except SteamFriendGraphError as exc:
            logger.warning(
                "request_failed",
                endpoint=message.endpoint,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ResponseMessage.error(message.endpoint, str(exc))
        except Exception as exc:
            logger.error("unhandled_exception", endpoint=message.endpoint, exc_info=exc)
            return ResponseMessage.error(message.endpoint, "internal error")

        logger.info("handled", endpoint=message.endpoint)
        return ResponseMessage.success(message.endpoint, data)

    # ------------------------------------------------------------------
    # Endpoint handlers
    # ------------------------------------------------------------------

    async def _ping(self, _id: str) -> str:
        return "pong"

    async def _generate_graph_data(self, token: str) -> dict:
        self._governor.check()
        await self._session.reset()
        root_id = await self._session.expand(token)
        return build_graph(self._session.records, root_id)

    async def _generate_labels(self, _id: str) -> dict[str, str]:
        profiles = await self._session.resolve_profiles()
        return generate_labels(profiles)

    async def _get_friend_profiles(self, token: str) -> dict:
        friends, profile = await self._session.friends_of(token)
        return {
            "friends": [friend.to_wire() for friend in friends],
            "profile": profile.to_wire(),
        }


def _decode(raw: str | bytes | None) -> RequestMessage | ResponseMessage:
    """Parse *raw* into a request, or an error response when it is malformed.

    Text and binary frames are both accepted; binary payloads must be UTF-8.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return ResponseMessage.error("", "malformed message: payload is not UTF-8")
    if raw is None:
        return ResponseMessage.error("", "malformed message: empty frame")
    try:
        return RequestMessage.model_validate_json(raw)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        return ResponseMessage.error("", f"malformed message: {first['msg']}")


@router.websocket("/")
async def friend_graph_socket(
    websocket: WebSocket,
    client: SteamClient = Depends(get_steam_client),
    governor: CallGovernor = Depends(get_call_governor),
    settings: Settings = Depends(get_settings),
) -> None:
    """Serve one WebSocket connection until the peer disconnects."""
    connection_id = str(uuid.uuid4())
    connection_id_var.set(connection_id)
    structlog.contextvars.bind_contextvars(connection_id=connection_id)

    await websocket.accept()
    logger.info("connection_opened")

    try:
        governor.check()
    except CallBudgetExceededError as exc:
        await websocket.send_json(ResponseMessage.error("", str(exc)).model_dump(mode="json"))
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        structlog.contextvars.clear_contextvars()
        return

    socket_session = SocketSession(new_acquisition_session(client, settings), governor)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = message.get("text")
            decoded = _decode(raw if raw is not None else message.get("bytes"))
            if isinstance(decoded, ResponseMessage):
                response = decoded
            else:
                response = await socket_session.handle(decoded)
            await websocket.send_json(response.model_dump(mode="json"))
    except WebSocketDisconnect:
        logger.info("connection_closed", records=len(socket_session.session))
    finally:
        structlog.contextvars.clear_contextvars()
