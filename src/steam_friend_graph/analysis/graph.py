"""Friend graph assembly and label generation.

Turns a session's identity → record map into a plain, JSON-serializable
graph dict and builds a label index from resolved profiles.  Both functions
are pure: they read their inputs and keep no state.

Graph dict format::

    {
      "nodes": [{"id": str, "label": str}, ...],
      "edges": [
        {"id": "<owner>-<target>", "source": str, "target": str, "friendSince": int},
        ...
      ],
      "rootId": str | None
    }

Design notes
------------
- One node per record, placeholders included; a node's label is the
  display name when known and the bare SteamID64 otherwise.
- Edges come only from records whose own friend list was fetched.  The
  Steam API returns each friendship attached to its owner, so a friendship
  fetched from both sides yields two edges with distinct IDs.
- Nodes and edges are sorted by ``id``; assembling the same state twice
  produces identical output.
"""

from __future__ import annotations

from typing import Iterable, Mapping

import structlog

from steam_friend_graph.steam.models import SteamProfile, SteamUser

logger = structlog.get_logger(__name__)


def _empty_graph(root_id: str | None = None) -> dict:
    """Return an empty graph dict."""
    return {"nodes": [], "edges": [], "rootId": root_id}


def edge_id(owner_id: str, target_id: str) -> str:
    """Return the deterministic ID of the edge *owner_id* → *target_id*."""
    return f"{owner_id}-{target_id}"


def build_graph(records: Mapping[str, SteamUser], root_id: str | None) -> dict:
    """Build a node/edge graph from a session's records.

    Args:
        records: SteamID64 → :class:`SteamUser` map, typically
            ``AcquisitionSession.records``.
        root_id: Canonical root ID carried as ``rootId`` metadata.

    Returns:
        Graph dict (see module docstring).
    """
    if not records:
        return _empty_graph(root_id)

    nodes: list[dict] = []
    edges: list[dict] = []
    for steam_id, user in records.items():
        nodes.append({
            "id": steam_id,
            "label": user.profile.persona_name or steam_id,
        })
        if user.friends is None:
            continue
        for friend in user.friends:
            edges.append({
                "id": edge_id(steam_id, friend.steam_id),
                "source": steam_id,
                "target": friend.steam_id,
                "friendSince": friend.friend_since,
            })

    nodes.sort(key=lambda node: node["id"])
    edges.sort(key=lambda edge: edge["id"])

    logger.info(
        "graph_built",
        root_id=root_id,
        nodes=len(nodes),
        edges=len(edges),
    )
    return {"nodes": nodes, "edges": edges, "rootId": root_id}


def profile_label(profile: SteamProfile) -> str | None:
    """Return ``"name (real name) (country)"`` for *profile*, or ``None`` without a name."""
    if not profile.persona_name:
        return None
    label = profile.persona_name
    if profile.real_name:
        label += f" ({profile.real_name})"
    if profile.country_code:
        label += f" ({profile.country_code})"
    return label


def generate_labels(profiles: Iterable[SteamProfile]) -> dict[str, str]:
    """Map each SteamID64 to a human-readable label.

    Profiles without a display name are omitted rather than given an empty
    label.
    """
    labels: dict[str, str] = {}
    for profile in profiles:
        label = profile_label(profile)
        if label is not None:
            labels[profile.steam_id] = label
    return labels
