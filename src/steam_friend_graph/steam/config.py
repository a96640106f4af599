"""Steam Web API endpoints and protocol constants.

The three ``ISteamUser`` methods used by the client:

- ``ResolveVanityURL`` — maps a vanity URL name to a SteamID64.
- ``GetFriendList`` — returns the friend list of a public profile.
- ``GetPlayerSummaries`` — returns profile summaries for up to 100 SteamIDs.

All methods authenticate with the ``key`` query parameter.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# API base URL and endpoints
# ---------------------------------------------------------------------------

STEAM_API_BASE: str = "https://api.steampowered.com"
"""Default Steam Web API base URL (see ``Settings.steam_api_base``)."""

RESOLVE_VANITY_PATH: str = "/ISteamUser/ResolveVanityURL/v0001/"
"""Vanity URL resolution method."""

FRIEND_LIST_PATH: str = "/ISteamUser/GetFriendList/v0001/"
"""Friend list method."""

PLAYER_SUMMARIES_PATH: str = "/ISteamUser/GetPlayerSummaries/v0002/"
"""Batch profile summary method."""

# ---------------------------------------------------------------------------
# Identity format
# ---------------------------------------------------------------------------

CANONICAL_ID_PREFIX: str = "765611"
"""Every individual-account SteamID64 starts with this prefix."""

CANONICAL_ID_LENGTH: int = 17
"""Length of a SteamID64 in decimal digits."""

# ---------------------------------------------------------------------------
# Protocol values
# ---------------------------------------------------------------------------

VANITY_NO_MATCH: int = 42
"""``response.success`` value returned by ResolveVanityURL when nothing matches."""

FRIEND_RELATIONSHIP: str = "friend"
"""``relationship`` filter sent to GetFriendList."""

MAX_PROFILES_PER_CALL: int = 100
"""Upper bound on ``steamids`` accepted by GetPlayerSummaries."""
