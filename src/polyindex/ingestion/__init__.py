"""Upstream market-data clients."""
