"""Admission control based on the Steam client's remote call counter.

The client only counts calls; this governor decides whether new work may
start.  Work already in progress is never interrupted.

Usage::

    governor = CallGovernor(client, max_calls=settings.max_remote_calls)
    governor.check()  # raises CallBudgetExceededError once the ceiling is hit
"""

from __future__ import annotations

import logging

from steam_friend_graph.core.exceptions import CallBudgetExceededError
from steam_friend_graph.steam.client import SteamClient

logger = logging.getLogger(__name__)


class CallGovernor:
    """Refuse new sessions and traversals once ``max_calls`` remote calls were made.

    Args:
        client: The process-wide :class:`SteamClient`.
        max_calls: Ceiling on ``client.call_count``.  ``0`` disables the check.
    """

    def __init__(self, client: SteamClient, max_calls: int = 0) -> None:
        self._client = client
        self._max_calls = max_calls

    @property
    def max_calls(self) -> int:
        return self._max_calls

    @property
    def enabled(self) -> bool:
        return self._max_calls > 0

    def admits(self) -> bool:
        """Return ``True`` while the call counter is below the ceiling."""
        if not self.enabled:
            return True
        return self._client.call_count < self._max_calls

    def check(self) -> None:
        """Raise when the ceiling has been reached.

        Raises:
            CallBudgetExceededError: ``client.call_count >= max_calls``.
        """
        if not self.admits():
            logger.warning(
                "governor: refusing work at %d remote calls (ceiling %d)",
                self._client.call_count,
                self._max_calls,
            )
            raise CallBudgetExceededError(self._client.call_count, self._max_calls)
