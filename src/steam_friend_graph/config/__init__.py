"""Configuration package for Steam Friend Graph.

Re-exports the settings symbols so that callers can write::

    from steam_friend_graph.config import get_settings
"""

from __future__ import annotations

from steam_friend_graph.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
