"""Steam Friend Graph: one-hop friend network acquisition for Steam accounts."""

__version__ = "0.1.0"
