"""Chat-driven hypercore archive bot."""

__version__ = "0.1.0"
