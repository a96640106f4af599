"""Graph assembly over acquired friend data."""

from __future__ import annotations

from steam_friend_graph.analysis.graph import build_graph, generate_labels

__all__ = [
    "build_graph",
    "generate_labels",
]
