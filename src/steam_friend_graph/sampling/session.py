"""Acquisition session: one-hop friend network expansion for one client.

An :class:`AcquisitionSession` owns a map of SteamID64 → :class:`SteamUser`
and fills it through a shared :class:`SteamClient`:

1. :meth:`AcquisitionSession.expand` resolves the root identity, fetches its
   friend list, registers every friend as a placeholder record, then fetches
   the friend lists of those direct friends concurrently.  Accounts found in
   those second-level lists are registered as placeholders but never
   expanded themselves.
2. :meth:`AcquisitionSession.resolve_profiles` replaces every placeholder
   profile with a ``GetPlayerSummaries`` result, chunk by chunk.
3. :meth:`AcquisitionSession.friends_of` answers "who of this account's
   friends are in the session?".

Key design properties:

- **Deduplication**: exactly one record per SteamID64; registration is
  first-write-wins, so an account reached from several friends is stored
  once.
- **Atomic merges**: registration and profile updates only happen while
  holding the session's ``asyncio.Lock``.
- **Fork/join**: both fan-outs go through
  :func:`~steam_friend_graph.core.fanout.fan_out`; the first failing worker
  aborts the operation.  Records merged before the abort stay in the map.
- **Private friend lists**: a direct friend whose friend list is private
  (HTTP 401) keeps ``friends=None`` instead of aborting the expansion.
  A private root is an error.
- **Deadline**: every operation shares one deadline across its calls.

Sessions are not shared between clients.  Call :meth:`reset` before
starting a new traversal.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from steam_friend_graph.core.exceptions import NotFoundError, RemoteError, ValidationError
from steam_friend_graph.core.fanout import deadline_after, fan_out
from steam_friend_graph.steam.client import SteamClient
from steam_friend_graph.steam.models import SteamProfile, SteamUser

logger = logging.getLogger(__name__)

SUPPORTED_DEPTH: int = 1
"""Only one-hop expansion is implemented."""

_PRIVATE_FRIEND_LIST_STATUS: int = 401


class AcquisitionSession:
    """Orchestrate friend network acquisition for one client interaction.

    Args:
        client: The process-wide :class:`SteamClient`.
        concurrency_limit: Maximum concurrent friend-list fetches.  Defaults
            to the client's limit.
        operation_timeout: Default deadline in seconds for each public
            operation.  ``None`` disables the deadline.
    """

    def __init__(
        self,
        client: SteamClient,
        *,
        concurrency_limit: Optional[int] = None,
        operation_timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._records: dict[str, SteamUser] = {}
        self._lock = asyncio.Lock()
        self._root_id: str | None = None
        self._concurrency_limit = concurrency_limit or client.concurrency_limit
        self._operation_timeout = operation_timeout

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def root_id(self) -> str | None:
        """Canonical ID of the last successfully expanded root."""
        return self._root_id

    @property
    def records(self) -> dict[str, SteamUser]:
        """Snapshot of the identity → record map."""
        return dict(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, steam_id: object) -> bool:
        return steam_id in self._records

    def __repr__(self) -> str:
        return f"<AcquisitionSession root_id={self._root_id} records={len(self._records)}>"

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def expand(
        self,
        root_token: str,
        depth: int = SUPPORTED_DEPTH,
        timeout: Optional[float] = None,
    ) -> str:
        """Expand the friend network one hop around *root_token*.

        Args:
            root_token: SteamID64 or vanity name of the root account.
            depth: Must be ``1``.  Kept for forward compatibility.
            timeout: Deadline in seconds for the whole expansion.  Defaults
                to the session's ``operation_timeout``.

        Returns:
            The canonical root SteamID64.

        Raises:
            ValidationError: Unsupported depth or unresolvable root.
            RemoteError: Any remote failure (``"aborted"`` when a friend-list
                fetch of a direct friend failed).
        """
        if depth != SUPPORTED_DEPTH:
            raise ValidationError(
                f"depth {depth} is not supported; only {SUPPORTED_DEPTH} hop is",
                reason="unsupported_depth",
            )
        deadline = deadline_after(self._timeout(timeout))

        root_id = await self._client.resolve_identity(root_token, deadline=deadline)
        root = await self._register(root_id)
        await self._populate_friends(root, deadline)

        async with self._lock:
            direct = {
                edge.steam_id: self._records[edge.steam_id]
                for edge in root.friends or []
            }
        pending = [user for user in direct.values() if not user.has_friends]

        async def _expand_friend(user: SteamUser) -> None:
            try:
                await self._populate_friends(user, deadline)
            except RemoteError as exc:
                if exc.status_code != _PRIVATE_FRIEND_LIST_STATUS:
                    raise
                logger.info("session: friend list of %s is private; skipped", user.steam_id)

        await fan_out(
            pending,
            _expand_friend,
            limit=self._concurrency_limit,
            deadline=deadline,
            label="friend lists",
        )

        self._root_id = root_id
        logger.info(
            "session: expanded %s: %d direct friends, %d records",
            root_id,
            len(direct),
            len(self._records),
        )
        return root_id

    async def resolve_profiles(self, timeout: Optional[float] = None) -> list[SteamProfile]:
        """Replace every placeholder profile in the session with its summary.

        Profiles fresh in the client's profile cache are used directly; the
        rest are fetched in concurrent chunks and merged chunk by chunk.

        Returns:
            Every resolved (non-placeholder) profile, ordered by SteamID64.
        """
        return await self._resolve_profiles(deadline_after(self._timeout(timeout)))

    async def friends_of(
        self,
        token: str,
        timeout: Optional[float] = None,
    ) -> tuple[list[SteamProfile], SteamProfile]:
        """Return the session-known friends of *token* and its own profile.

        Friends that are not in the session are omitted.  An account whose
        own friend list was never fetched has no known friends and yields an
        empty list.

        Raises:
            ValidationError: *token* cannot be resolved.
            NotFoundError: The account is not part of the session.
        """
        deadline = deadline_after(self._timeout(timeout))
        steam_id = await self._client.resolve_identity(token, deadline=deadline)
        if steam_id not in self._records:
            raise NotFoundError(steam_id)

        await self._resolve_profiles(deadline)

        async with self._lock:
            user = self._records.get(steam_id)
            if user is None:
                raise NotFoundError(steam_id)
            friends = [
                self._records[edge.steam_id].profile
                for edge in user.friends or []
                if edge.steam_id in self._records
            ]
            return friends, user.profile

    async def reset(self) -> None:
        """Discard all session state."""
        async with self._lock:
            self._records = {}
            self._root_id = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self._operation_timeout

    async def _register(self, steam_id: str) -> SteamUser:
        """Return the record for *steam_id*, creating a placeholder if needed."""
        async with self._lock:
            user = self._records.get(steam_id)
            if user is None:
                user = SteamUser.placeholder(steam_id)
                self._records[steam_id] = user
            return user

    async def _populate_friends(self, user: SteamUser, deadline: Optional[float]) -> None:
        """Fetch *user*'s friend list once and register every friend."""
        if user.has_friends:
            return
        edges = await self._client.fetch_connections(user.steam_id, deadline=deadline)
        async with self._lock:
            if user.friends is None:
                user.friends = edges
            for edge in edges:
                if edge.steam_id not in self._records:
                    self._records[edge.steam_id] = SteamUser.placeholder(edge.steam_id)

    async def _merge_profiles(self, profiles: list[SteamProfile]) -> None:
        async with self._lock:
            for profile in profiles:
                user = self._records.get(profile.steam_id)
                if user is not None:
                    user.profile = profile

    async def _resolve_profiles(self, deadline: Optional[float]) -> list[SteamProfile]:
        async with self._lock:
            unresolved = [
                steam_id
                for steam_id, user in self._records.items()
                if user.profile.is_placeholder
            ]
        if unresolved:
            await self._client.fetch_profiles(
                unresolved,
                on_chunk=self._merge_profiles,
                deadline=deadline,
            )
        async with self._lock:
            return sorted(
                (u.profile for u in self._records.values() if not u.profile.is_placeholder),
                key=lambda profile: profile.steam_id,
            )
