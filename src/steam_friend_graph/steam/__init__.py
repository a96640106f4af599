"""Steam Web API package.

- ``SteamClient``: cached, counted access to ``ISteamUser`` methods.
- ``SteamProfile``, ``FriendEdge``, ``SteamUser``: payload and record models.
"""

from __future__ import annotations

from steam_friend_graph.steam.client import SteamClient, is_canonical
from steam_friend_graph.steam.models import FriendEdge, SteamProfile, SteamUser

__all__ = [
    "FriendEdge",
    "SteamClient",
    "SteamProfile",
    "SteamUser",
    "is_canonical",
]
