"""Whale leaderboard, watch list and per-period profile enrichment service."""

__version__ = "0.1.0"
