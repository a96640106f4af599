"""Pydantic models for Steam Web API payloads and session records.

Field names follow Python conventions; the Steam wire names are kept as
aliases so payloads validate directly and dump back with
``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Profiles and friend edges
# ---------------------------------------------------------------------------


class SteamProfile(BaseModel):
    """Public profile summary of one Steam account.

    A placeholder profile (discovered via a friend edge, not yet resolved)
    carries only ``steam_id``.

    Attributes:
        steam_id: SteamID64 of the account.
        persona_name: Display name.
        profile_url: Community profile URL.
        avatar: 32px avatar URL.
        avatar_medium: 64px avatar URL.
        avatar_full: 184px avatar URL.
        persona_state: Presence state (0 offline … 6 looking to play).
        real_name: Real name, if the user made it public.
        country_code: ISO 3166-1 alpha-2 country code, if public.
        time_created: Account creation time (Unix seconds), if public.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    steam_id: str = Field(alias="steamid", min_length=1)
    persona_name: Optional[str] = Field(default=None, alias="personaname")
    profile_url: Optional[str] = Field(default=None, alias="profileurl")
    avatar: Optional[str] = None
    avatar_medium: Optional[str] = Field(default=None, alias="avatarmedium")
    avatar_full: Optional[str] = Field(default=None, alias="avatarfull")
    persona_state: Optional[int] = Field(default=None, alias="personastate")
    real_name: Optional[str] = Field(default=None, alias="realname")
    country_code: Optional[str] = Field(default=None, alias="loccountrycode")
    time_created: Optional[int] = Field(default=None, alias="timecreated")

    @field_validator("persona_name", "real_name", "country_code", mode="before")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        """Coerce empty or whitespace-only strings to None."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def placeholder(cls, steam_id: str) -> SteamProfile:
        """Return a profile that reserves *steam_id* without any attributes."""
        return cls(steam_id=steam_id)

    @property
    def is_placeholder(self) -> bool:
        return self.persona_name is None and self.profile_url is None

    def to_wire(self) -> dict:
        """Serialise with Steam field names, omitting unset attributes."""
        return self.model_dump(by_alias=True, exclude_none=True)


class FriendEdge(BaseModel):
    """One entry of a friend list, attached to the owner whose list it came from.

    Attributes:
        steam_id: SteamID64 of the friend.
        relationship: Relationship filter the entry matched (``"friend"``).
        friend_since: Unix time the friendship was created.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    steam_id: str = Field(alias="steamid", min_length=1)
    relationship: str = "friend"
    friend_since: int = 0


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------


class _VanityResult(BaseModel):
    success: int
    steamid: Optional[str] = None
    message: Optional[str] = None


class VanityResolutionResponse(BaseModel):
    """``ResolveVanityURL`` payload."""

    response: _VanityResult


class _FriendsList(BaseModel):
    friends: list[FriendEdge] = []


class FriendListResponse(BaseModel):
    """``GetFriendList`` payload."""

    friendslist: _FriendsList = Field(default_factory=_FriendsList)


class _Players(BaseModel):
    players: list[SteamProfile] = []


class PlayerSummariesResponse(BaseModel):
    """``GetPlayerSummaries`` payload."""

    response: _Players = Field(default_factory=_Players)


# ---------------------------------------------------------------------------
# Session record
# ---------------------------------------------------------------------------


class SteamUser:
    """A profile plus the friend list of one account within a session.

    ``friends`` is ``None`` until the account's own friend list has been
    fetched; it is populated at most once.  The record's ``steam_id`` is
    fixed at construction.

    Args:
        profile: Initial profile (usually a placeholder).
        friends: Friend edges owned by this account, if already known.
    """

    __slots__ = ("_steam_id", "profile", "friends")

    def __init__(
        self,
        profile: SteamProfile,
        friends: list[FriendEdge] | None = None,
    ) -> None:
        self._steam_id = profile.steam_id
        self.profile = profile
        self.friends = friends

    @property
    def steam_id(self) -> str:
        return self._steam_id

    @property
    def has_friends(self) -> bool:
        return self.friends is not None

    @classmethod
    def placeholder(cls, steam_id: str) -> SteamUser:
        return cls(SteamProfile.placeholder(steam_id))

    def __repr__(self) -> str:
        friends = "?" if self.friends is None else len(self.friends)
        return f"<SteamUser steam_id={self._steam_id} friends={friends}>"
