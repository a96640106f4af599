"""Shared pytest fixtures for Steam Friend Graph tests.

Fixture summary
---------------
clock         — FakeClock injected into every cache built by the fixtures.
steam_api     — FakeSteamAPI mounted on an active respx router.
steam_client  — SteamClient talking to ``steam_api`` through respx.

No test needs network access: every Steam Web API call is answered by
``tests.fakes.FakeSteamAPI``.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
import respx

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Set required env vars before any application modules are imported so that
# Settings() does not raise a ValidationError during collection.

_TEST_ENV_DEFAULTS: dict[str, str] = {
    "STEAM_KEY": "test-steam-key",
    "LOG_LEVEL": "WARNING",
}

for _key, _default in _TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _default)

from steam_friend_graph.config.settings import get_settings  # noqa: E402
from steam_friend_graph.steam.client import SteamClient  # noqa: E402
from tests.fakes import TEST_API_KEY, FakeClock, FakeSteamAPI  # noqa: E402

get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def steam_api() -> Iterator[FakeSteamAPI]:
    """FakeSteamAPI answering every request sent through httpx's default transport."""
    api = FakeSteamAPI(api_key=TEST_API_KEY)
    with respx.mock(assert_all_called=False) as router:
        api.mount(router)
        yield api


@pytest_asyncio.fixture
async def steam_client(
    steam_api: FakeSteamAPI, clock: FakeClock
) -> AsyncIterator[SteamClient]:
    client = SteamClient(
        TEST_API_KEY,
        clock=clock,
        url_cache_ttl=900.0,
        profile_cache_ttl=900.0,
        concurrency_limit=8,
    )
    yield client
    await client.aclose()
