"""WebSocket message schemas.

Every inbound frame is a JSON object ``{"endpoint": str, "id": str}``; every
outbound frame is ``{"endpoint": str, "status": 0 | 1, "data": ..., "err": str}``
with ``status`` 0 on success and 1 on error.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageStatus(IntEnum):
    """Outcome carried in ``ResponseMessage.status``."""

    SUCCESS = 0
    ERROR = 1


class RequestMessage(BaseModel):
    """Inbound request frame.

    Attributes:
        endpoint: Operation name (``ping``, ``generateGraphData``,
            ``generateLabels``, ``getFriendProfiles``).
        id: SteamID64 or vanity name the operation applies to.  Ignored by
            ``ping`` and ``generateLabels``.
    """

    model_config = ConfigDict(extra="ignore")

    endpoint: str = Field(..., min_length=1)
    id: str = ""


class ResponseMessage(BaseModel):
    """Outbound response frame."""

    endpoint: str = ""
    status: MessageStatus = MessageStatus.SUCCESS
    data: Any = None
    err: str = ""

    @classmethod
    def success(cls, endpoint: str, data: Any) -> ResponseMessage:
        return cls(endpoint=endpoint, status=MessageStatus.SUCCESS, data=data)

    @classmethod
    def error(cls, endpoint: str, err: str) -> ResponseMessage:
        return cls(endpoint=endpoint, status=MessageStatus.ERROR, err=err)
