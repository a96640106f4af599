"""Application-wide exception hierarchy for Steam Friend Graph.

All custom exceptions subclass ``SteamFriendGraphError``, enabling
consistent error handling and structured logging across the application.

Hierarchy::

    SteamFriendGraphError
    ├── ValidationError      (reason: str, token: str | None)
    ├── NotFoundError        (steam_id: str)
    ├── CallBudgetExceededError (calls: int, ceiling: int)
    └── RemoteError          (kind: str, url: str | None, status_code: int | None)
        └── FanOutAbortedError   (first_error: BaseException)
"""

from __future__ import annotations


class SteamFriendGraphError(Exception):
    """Base class for all Steam Friend Graph exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Identity exceptions
# ---------------------------------------------------------------------------


class ValidationError(SteamFriendGraphError):
    """Raised when an identity cannot be turned into a canonical SteamID64.

    Args:
        message: Human-readable description of the failure.
        reason: Machine-readable reason.  One of ``"empty"``,
            ``"non_canonical"``, ``"unresolvable"`` or ``"unsupported_depth"``.
        token: The offending input token, if any.
    """

    def __init__(
        self,
        message: str,
        reason: str,
        token: str | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.token = token


class NotFoundError(SteamFriendGraphError):
    """Raised when a queried identity is not present in the session state.

    Args:
        steam_id: Canonical SteamID64 that was looked up.
    """

    def __init__(self, steam_id: str) -> None:
        super().__init__(f"profile not found: {steam_id}")
        self.steam_id = steam_id


class CallBudgetExceededError(SteamFriendGraphError):
    """Raised when the remote call counter has reached the configured ceiling.

    New sessions and new traversals are refused until the process restarts.

    Args:
        calls: Current value of the remote call counter.
        ceiling: Configured maximum.
    """

    def __init__(self, calls: int, ceiling: int) -> None:
        super().__init__(
            f"remote call budget exhausted: {calls} calls made, ceiling is {ceiling}"
        )
        self.calls = calls
        self.ceiling = ceiling


# ---------------------------------------------------------------------------
# Remote exceptions
# ---------------------------------------------------------------------------


class RemoteError(SteamFriendGraphError):
    """Raised when a call to the Steam Web API fails.

    Args:
        message: Human-readable description of the failure.
        kind: ``"network"`` (transport failure or non-2xx status),
            ``"decode"`` (malformed payload), ``"aborted"`` (a sibling task
            in a fan-out failed) or ``"timeout"`` (deadline passed).
        url: Request URL without the API key, when known.
        status_code: HTTP status code, when the server answered.
    """

    def __init__(
        self,
        message: str,
        kind: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.url = url
        self.status_code = status_code


class FanOutAbortedError(RemoteError):
    """Raised when a concurrent batch operation is aborted by a failing worker.

    The remaining workers are cancelled.  The failure that triggered the
    abort is available as ``first_error`` and as ``__cause__``.

    Args:
        first_error: The first exception raised by any worker.
        failed: Number of workers that had failed when the join completed.
        total: Number of workers spawned.
    """

    def __init__(
        self,
        first_error: BaseException,
        failed: int = 1,
        total: int = 1,
    ) -> None:
        super().__init__(
            f"batch aborted after {failed}/{total} task(s) failed: {first_error}",
            kind="aborted",
            url=getattr(first_error, "url", None),
            status_code=getattr(first_error, "status_code", None),
        )
        self.first_error = first_error
        self.failed = failed
        self.total = total
