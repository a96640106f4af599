"""Allow ``python -m steam_friend_graph``."""

from __future__ import annotations

import sys

from steam_friend_graph.cli import main

sys.exit(main())
