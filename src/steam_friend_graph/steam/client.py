"""Steam Web API client with response caching and a remote call counter.

One :class:`SteamClient` is created at process start and shared by every
acquisition session.  It issues the three ``ISteamUser`` calls the service
needs:

- :meth:`SteamClient.resolve_identity` — vanity name → SteamID64 via
  ``ResolveVanityURL`` (canonical IDs are returned without a call);
- :meth:`SteamClient.fetch_connections` — ``GetFriendList`` for one account;
- :meth:`SteamClient.fetch_profiles` — ``GetPlayerSummaries`` in concurrent
  chunks of at most 100 IDs.

Every request is keyed by its deterministic URL (endpoint plus sorted query
parameters, API key excluded).  A live entry in the response cache is served
without a network call; a fresh 2xx response that decodes cleanly is stored
for ``url_cache_ttl`` seconds.  Freshly fetched profiles are additionally kept
in a profile cache so :meth:`fetch_profiles` can skip them outright.
Identical requests already in flight share a single remote call.

:attr:`SteamClient.call_count` counts requests actually sent.  Enforcing a
ceiling on it is the job of the transport layer.

No call is retried; errors surface as
:class:`~steam_friend_graph.core.exceptions.RemoteError` or
:class:`~steam_friend_graph.core.exceptions.ValidationError`.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, TypeVar

import httpx
import pydantic

from steam_friend_graph.core.cache import Clock, TTLCache
from steam_friend_graph.core.exceptions import RemoteError, ValidationError
from steam_friend_graph.core.fanout import fan_out, run_with_deadline
from steam_friend_graph.steam.config import (
    CANONICAL_ID_LENGTH,
    CANONICAL_ID_PREFIX,
    FRIEND_LIST_PATH,
    FRIEND_RELATIONSHIP,
    MAX_PROFILES_PER_CALL,
    PLAYER_SUMMARIES_PATH,
    RESOLVE_VANITY_PATH,
    STEAM_API_BASE,
    VANITY_NO_MATCH,
)
from steam_friend_graph.steam.models import (
    FriendEdge,
    FriendListResponse,
    PlayerSummariesResponse,
    SteamProfile,
    VanityResolutionResponse,
)

if TYPE_CHECKING:
    from steam_friend_graph.config.settings import Settings

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)

ChunkCallback = Callable[[list[SteamProfile]], Awaitable[None]]


class _PendingFetch:
    """A request in flight and the number of callers awaiting it."""

    __slots__ = ("task", "waiters")

    def __init__(self, task: asyncio.Future[bytes]) -> None:
        self.task = task
        self.waiters = 0


def is_canonical(token: str) -> bool:
    """Return ``True`` when *token* is a SteamID64 (17 digits, ``765611`` prefix)."""
    return (
        len(token) == CANONICAL_ID_LENGTH
        and token.startswith(CANONICAL_ID_PREFIX)
        and token.isascii()
        and token.isdigit()
    )


def chunked(ids: list[str], size: int) -> list[list[str]]:
    """Split *ids* into ordered chunks of at most *size* elements."""
    return [ids[i:i + size] for i in range(0, len(ids), size)]


class SteamClient:
    """Cached, counted access to the Steam Web API.

    Args:
        api_key: Steam Web API key.
        api_base: API base URL.  Defaults to ``https://api.steampowered.com``.
        http_client: Optional injected :class:`httpx.AsyncClient` for testing.
        url_cache: Response cache.  Created with ``url_cache_ttl`` when omitted.
        profile_cache: Profile cache.  Created with ``profile_cache_ttl``
            when omitted.
        url_cache_ttl: Response cache TTL in seconds.
        profile_cache_ttl: Profile cache TTL in seconds.
        clock: Time source for caches created here.
        concurrency_limit: Maximum concurrent ``GetPlayerSummaries`` calls.
        chunk_size: Default number of IDs per ``GetPlayerSummaries`` call.
        request_timeout: Per-request timeout for the owned HTTP client.
    """

    def __init__(
        self,
        api_key: str,
        *,
        api_base: str = STEAM_API_BASE,
        http_client: httpx.AsyncClient | None = None,
        url_cache: TTLCache[str, bytes] | None = None,
        profile_cache: TTLCache[str, SteamProfile] | None = None,
        url_cache_ttl: float = 900.0,
        profile_cache_ttl: float = 900.0,
        clock: Clock = time.monotonic,
        concurrency_limit: int = 16,
        chunk_size: int = MAX_PROFILES_PER_CALL,
        request_timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._request_timeout = request_timeout
        # Explicit None checks: an empty TTLCache is falsy.
        if url_cache is None:
            url_cache = TTLCache(url_cache_ttl, clock=clock, name="url")
        if profile_cache is None:
            profile_cache = TTLCache(profile_cache_ttl, clock=clock, name="profile")
        self._url_cache: TTLCache[str, bytes] = url_cache
        self._profile_cache: TTLCache[str, SteamProfile] = profile_cache
        self._concurrency_limit = concurrency_limit
        self._chunk_size = _validate_chunk_size(chunk_size)
        self._call_count = 0
        self._in_flight: dict[str, _PendingFetch] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> SteamClient:
        """Build a client configured from application settings."""
        return cls(
            settings.steam_key,
            api_base=settings.steam_api_base,
            url_cache_ttl=settings.url_cache_ttl_seconds,
            profile_cache_ttl=settings.profile_cache_ttl_seconds,
            concurrency_limit=settings.concurrency_limit,
            chunk_size=settings.profile_chunk_size,
            request_timeout=settings.request_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def call_count(self) -> int:
        """Number of remote calls issued so far.  Cache hits are not counted."""
        return self._call_count

    @property
    def url_cache(self) -> TTLCache[str, bytes]:
        return self._url_cache

    @property
    def profile_cache(self) -> TTLCache[str, SteamProfile]:
        return self._profile_cache

    @property
    def concurrency_limit(self) -> int:
        return self._concurrency_limit

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close the owned HTTP client.  Injected clients are left open."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> SteamClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    async def resolve_identity(self, token: str, deadline: float | None = None) -> str:
        """Return the SteamID64 for *token*.

        Canonical IDs are returned unchanged without a remote call.  Purely
        numeric tokens that are not canonical are rejected without a call.
        Anything else is treated as a vanity URL name.

        Args:
            token: SteamID64 or vanity name.
            deadline: Optional loop-time deadline for the resolution call.

        Returns:
            The canonical SteamID64.

        Raises:
            ValidationError: ``reason`` is ``"empty"``, ``"non_canonical"`` or
                ``"unresolvable"``.
            RemoteError: On transport, status or decode failures.
        """
        token = (token or "").strip()
        if not token:
            raise ValidationError("empty identity", reason="empty", token=token)
        if is_canonical(token):
            return token
        if token.isascii() and token.isdigit():
            raise ValidationError(
                f"numeric id {token!r} is not a SteamID64",
                reason="non_canonical",
                token=token,
            )

        payload, _ = await self._request(
            RESOLVE_VANITY_PATH,
            {"vanityurl": token},
            VanityResolutionResponse,
            deadline,
        )
        result = payload.response
        if result.success == VANITY_NO_MATCH or not result.steamid:
            raise ValidationError(
                f"couldn't find vanity url {token!r}",
                reason="unresolvable",
                token=token,
            )
        logger.debug("steam: resolved vanity %r to %s", token, result.steamid)
        return result.steamid

    async def fetch_connections(
        self,
        steam_id: str,
        deadline: float | None = None,
    ) -> list[FriendEdge]:
        """Return the friend list of *steam_id*.

        Private profiles answer HTTP 401, surfaced as a ``"network"``
        :class:`RemoteError` with ``status_code=401``.
        """
        payload, _ = await self._request(
            FRIEND_LIST_PATH,
            {"steamid": steam_id, "relationship": FRIEND_RELATIONSHIP},
            FriendListResponse,
            deadline,
        )
        return list(payload.friendslist.friends)

    async def fetch_profiles(
        self,
        steam_ids: Iterable[str],
        chunk_size: int | None = None,
        on_chunk: ChunkCallback | None = None,
        deadline: float | None = None,
    ) -> list[SteamProfile]:
        """Return profile summaries for every ID in *steam_ids* the API knows.

        IDs fresh in the profile cache are served from it.  The rest are
        sorted, split into ordered chunks of at most *chunk_size* and fetched
        with one concurrent ``GetPlayerSummaries`` call per chunk.  Profiles
        are merged under a lock regardless of completion order.

        Args:
            steam_ids: Canonical SteamID64s.  Duplicates are ignored.
            chunk_size: IDs per call (1-100).  Defaults to the client setting.
            on_chunk: Awaited with each batch of profiles as it arrives
                (the cached batch first, if any).
            deadline: Loop-time deadline shared by every chunk call.

        Returns:
            Profiles ordered by SteamID64.  IDs the API omitted are absent.

        Raises:
            FanOutAbortedError: When any chunk call failed.
            RemoteError: ``kind="timeout"`` when the deadline passed.
        """
        size = _validate_chunk_size(self._chunk_size if chunk_size is None else chunk_size)
        ids = sorted(set(steam_ids))
        if not ids:
            return []

        cached = self._profile_cache.get_many(ids)
        missing = [steam_id for steam_id in ids if steam_id not in cached]
        merged: dict[str, SteamProfile] = dict(cached)
        merge_lock = asyncio.Lock()

        if cached and on_chunk is not None:
            await on_chunk(list(cached.values()))

        async def _fetch_chunk(chunk: list[str]) -> None:
            payload, fresh = await self._request(
                PLAYER_SUMMARIES_PATH,
                {"steamids": ",".join(chunk)},
                PlayerSummariesResponse,
                deadline,
            )
            requested = set(chunk)
            profiles = [p for p in payload.response.players if p.steam_id in requested]
            if fresh:
                for profile in profiles:
                    self._profile_cache.set(profile.steam_id, profile)
            async with merge_lock:
                for profile in profiles:
                    merged[profile.steam_id] = profile
            if on_chunk is not None:
                await on_chunk(profiles)

        chunks = chunked(missing, size)
        await fan_out(
            chunks,
            _fetch_chunk,
            limit=self._concurrency_limit,
            deadline=deadline,
            label="player summaries",
        )
        logger.info(
            "steam: resolved %d/%d profiles (%d cached, %d chunk call(s))",
            len(merged),
            len(ids),
            len(cached),
            len(chunks),
        )
        return [merged[steam_id] for steam_id in ids if steam_id in merged]

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def request_url(self, path: str, params: dict[str, str]) -> str:
        """Return the deterministic cache key URL for a call (no API key)."""
        return str(httpx.URL(self._api_base + path, params=sorted(params.items())))

    async def _request(
        self,
        path: str,
        params: dict[str, str],
        model: type[M],
        deadline: float | None,
    ) -> tuple[M, bool]:
        """Return the decoded payload for a call and whether it was fetched fresh.

        Raises:
            RemoteError: ``"network"``, ``"decode"`` or ``"timeout"``.
        """
        url = self.request_url(path, params)
        body = self._url_cache.get(url)
        fresh = False
        if body is None:
            body, fresh = await self._fetch_once(path, params, url, deadline)
        else:
            logger.debug("steam: cache hit %s", url)

        try:
            payload = model.model_validate_json(body)
        except pydantic.ValidationError as exc:
            raise RemoteError(
                f"steam: malformed payload from {path}",
                kind="decode",
                url=url,
            ) from exc

        if fresh:
            self._url_cache.set(url, body)
        return payload, fresh

    async def _fetch_once(
        self,
        path: str,
        params: dict[str, str],
        url: str,
        deadline: float | None,
    ) -> tuple[bytes, bool]:
        """Fetch *url*, joining an identical request that is already in flight.

        Returns the body and whether this caller issued the request.  Every
        joined caller sees the same body or the same error.  The shared
        request is cancelled once its last caller gives up.
        """
        pending = self._in_flight.get(url)
        leader = pending is None
        if pending is None:
            pending = _PendingFetch(asyncio.ensure_future(self._fetch(path, params, url)))
            self._in_flight[url] = pending
            pending.task.add_done_callback(functools.partial(self._forget, url, pending))
        else:
            logger.debug("steam: joined in-flight request %s", url)

        pending.waiters += 1
        try:
            body = await run_with_deadline(asyncio.shield(pending.task), deadline)
        finally:
            pending.waiters -= 1
            if not pending.waiters and not pending.task.done():
                pending.task.cancel()
                self._forget(url, pending)
        return body, leader

    def _forget(self, url: str, pending: _PendingFetch, _task: object = None) -> None:
        if self._in_flight.get(url) is pending:
            del self._in_flight[url]
        if pending.task.done() and not pending.task.cancelled():
            # Marks the error retrieved when no caller was left to see it.
            pending.task.exception()

    async def _fetch(self, path: str, params: dict[str, str], url: str) -> bytes:
        client = self._get_http_client()
        self._call_count += 1
        try:
            response = await client.get(
                self._api_base + path,
                params={"key": self._api_key, **params},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteError(
                f"steam: HTTP {exc.response.status_code} from {path}",
                kind="network",
                url=url,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            raise RemoteError(
                f"steam: connection error on {path}: {type(exc).__name__}",
                kind="network",
                url=url,
            ) from exc
        return response.content

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._request_timeout)
            self._owns_http_client = True
        return self._http_client


def _validate_chunk_size(size: int) -> int:
    if not 1 <= size <= MAX_PROFILES_PER_CALL:
        raise ValueError(f"chunk size must be between 1 and {MAX_PROFILES_PER_CALL}")
    return size
