"""Bounded fork/join helper for concurrent remote calls.

Both fan-outs of an acquisition (one friend-list fetch per account and one
``GetPlayerSummaries`` call per chunk) go through :func:`fan_out`:

- at most ``limit`` workers run at once (``asyncio.Semaphore``);
- every worker shares one deadline, expressed in event-loop time;
- the first worker failure is kept in a single slot, the remaining workers
  are cancelled, and the failure surfaces as :class:`FanOutAbortedError`;
- there is exactly one join point, reached whether zero, one, or every
  worker fails.

Usage::

    deadline = deadline_after(30.0)
    lists = await fan_out(ids, client.fetch_connections, limit=8, deadline=deadline)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from steam_friend_graph.core.exceptions import FanOutAbortedError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# ---------------------------------------------------------------------------
# Deadlines
# ---------------------------------------------------------------------------


def deadline_after(timeout: float | None) -> float | None:
    """Convert a relative *timeout* in seconds to an absolute loop-time deadline."""
    if timeout is None:
        return None
    return asyncio.get_running_loop().time() + timeout


def remaining(deadline: float | None) -> float | None:
    """Seconds left until *deadline*, or ``None`` when there is no deadline."""
    if deadline is None:
        return None
    return deadline - asyncio.get_running_loop().time()


async def run_with_deadline(awaitable: Awaitable[R], deadline: float | None) -> R:
    """Await *awaitable*, cancelling it if *deadline* passes first.

    Raises:
        RemoteError: ``kind="timeout"`` when the deadline passes.
    """
    left = remaining(deadline)
    if left is None:
        return await awaitable
    if left <= 0:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RemoteError("deadline exceeded before the call was issued", kind="timeout")
    try:
        return await asyncio.wait_for(awaitable, timeout=left)
    except asyncio.TimeoutError as exc:
        raise RemoteError("deadline exceeded", kind="timeout") from exc


# ---------------------------------------------------------------------------
# Fork/join
# ---------------------------------------------------------------------------


class _FirstFailure:
    """Fixed-capacity error slot: keeps the first failure, counts the rest."""

    __slots__ = ("error", "count")

    def __init__(self) -> None:
        self.error: BaseException | None = None
        self.count = 0

    def record(self, exc: BaseException) -> bool:
        self.count += 1
        if self.error is None:
            self.error = exc
            return True
        return False


async def fan_out(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    limit: int,
    deadline: float | None = None,
    label: str = "fan-out",
) -> list[R]:
    """Run *worker* once per item with bounded concurrency and join them all.

    Args:
        items: Units of work.  An empty sequence returns ``[]`` immediately.
        worker: Coroutine function applied to each item.
        limit: Maximum number of workers running at the same time.
        deadline: Absolute loop-time deadline shared by every worker (see
            :func:`deadline_after`).  ``None`` waits indefinitely.
        label: Name used in log messages.

    Returns:
        Worker results in the order of *items*.

    Raises:
        FanOutAbortedError: When any worker raised; ``first_error`` holds the
            first exception and the other workers were cancelled.
        RemoteError: ``kind="timeout"`` when the deadline passed before every
            worker finished.
    """
    if not items:
        return []
    if limit < 1:
        raise ValueError("limit must be at least 1")

    timeout = remaining(deadline)
    if timeout is not None and timeout <= 0:
        raise RemoteError(f"{label}: deadline exceeded before start", kind="timeout")

    semaphore = asyncio.Semaphore(limit)
    failure = _FirstFailure()
    results: list[R | None] = [None] * len(items)
    tasks: list[asyncio.Task[None]] = []

    async def _run(index: int, item: T) -> None:
        async with semaphore:
            if failure.error is not None:
                return
            try:
                results[index] = await worker(item)
            except Exception as exc:
                if failure.record(exc):
                    current = asyncio.current_task()
                    for task in tasks:
                        if task is not current:
                            task.cancel()

    tasks.extend(
        asyncio.create_task(_run(index, item)) for index, item in enumerate(items)
    )

    try:
        _, pending = await asyncio.wait(tasks, timeout=timeout)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)

    if failure.error is not None:
        logger.warning(
            "%s: aborted after %d/%d worker(s) failed: %s",
            label,
            failure.count,
            len(items),
            failure.error,
        )
        raise FanOutAbortedError(
            failure.error, failed=failure.count, total=len(items)
        ) from failure.error
    if pending:
        raise RemoteError(
            f"{label}: deadline exceeded with {len(pending)}/{len(items)} task(s) unfinished",
            kind="timeout",
        )
    return results  # type: ignore[return-value]
