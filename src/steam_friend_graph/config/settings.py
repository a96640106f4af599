"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
The Steam Web API key is accessed exclusively through this module;
never call ``os.getenv`` directly elsewhere in the codebase.

Usage::

    from steam_friend_graph.config.settings import get_settings

    settings = get_settings()
    ttl = settings.url_cache_ttl_seconds
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from steam_friend_graph.steam.config import STEAM_API_BASE


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables and an optional .env file.

    ``steam_key`` has no default and must be supplied via the environment or a
    .env file before the application starts.  It should never be committed to
    version control.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Steam Web API
    # ------------------------------------------------------------------

    steam_key: str
    """Steam Web API key sent as the ``key`` query parameter on every call.

    Obtain one at https://steamcommunity.com/dev/apikey.
    """

    steam_api_base: str = STEAM_API_BASE
    """Base URL of the Steam Web API.  Overridden in tests and for proxies."""

    request_timeout_seconds: float = Field(default=10.0, gt=0)
    """Per-request HTTP timeout applied to the shared ``httpx.AsyncClient``."""

    # ------------------------------------------------------------------
    # Caching
    # ------------------------------------------------------------------

    url_cache_ttl_seconds: float = Field(default=900.0, gt=0)
    """Lifetime of a cached raw response, keyed by request URL.  15 minutes."""

    profile_cache_ttl_seconds: float = Field(default=900.0, gt=0)
    """Lifetime of a cached player summary, keyed by SteamID64."""

    cache_sweep_interval_seconds: float = Field(default=30.0, gt=0)
    """How often the eviction scheduler purges expired cache entries."""

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    profile_chunk_size: int = Field(default=100, ge=1, le=100)
    """Number of SteamIDs per ``GetPlayerSummaries`` call.  The API caps it at 100."""

    concurrency_limit: int = Field(default=16, ge=1)
    """Maximum number of concurrent remote calls within one fan-out."""

    operation_timeout_seconds: float = Field(default=60.0, gt=0)
    """Deadline applied to a whole expansion or profile resolution."""

    max_remote_calls: int = Field(default=0, ge=0)
    """Remote call ceiling after which new sessions are refused.  ``0`` disables it."""

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    app_name: str = "Steam Friend Graph"
    """Human-readable application name shown in the OpenAPI docs."""

    host: str = "localhost"
    """Interface the uvicorn server binds to."""

    port: int = 8080
    """TCP port the uvicorn server listens on."""

    allowed_origins: list[str] = ["*"]
    """Origins permitted by the CORS middleware."""

    debug: bool = False
    """Enable FastAPI debug mode.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
