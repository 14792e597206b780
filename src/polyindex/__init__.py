"""Polyindex - curated and rule-based indexes over Polymarket prediction markets."""

__version__ = "0.1.0"
