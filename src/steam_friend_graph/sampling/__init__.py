"""Friend network acquisition.

Public symbols:

- ``AcquisitionSession``: one-hop expansion, profile resolution and friend
  queries over a per-client identity map.
- ``SUPPORTED_DEPTH``: the only expansion depth accepted (``1``).
"""

from __future__ import annotations

from steam_friend_graph.sampling.session import (
    SUPPORTED_DEPTH,
    AcquisitionSession,
)

__all__ = [
    "AcquisitionSession",
    "SUPPORTED_DEPTH",
]
