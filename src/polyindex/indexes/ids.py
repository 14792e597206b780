"""Stable ids for curated indexes so regeneration updates the same rows."""

from __future__ import annotations

import uuid

# Fixed namespace for curated index keys. Changing it orphans every stored curated index.
CURATED_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://polyindex.app/curated-indexes")


def curated_index_id(key: str) -> str:
    """UUIDv5 of key under CURATED_NAMESPACE. Only meant for the fixed curated keys."""
    return str(uuid.uuid5(CURATED_NAMESPACE, key))


def new_index_id() -> str:
    return str(uuid.uuid4())
