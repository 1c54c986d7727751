"""
Storage backends for scan history.
"""

from typing import Optional

from mockly.core.config import Config
from mockly.storage.base import ScanStore
from mockly.storage.json_store import JsonScanStore
from mockly.storage.memory import MemoryScanStore


def create_store(config: Optional[Config] = None) -> ScanStore:
    """JSON store when ``server.store_dir`` is set, in-memory store otherwise."""
    config = config or Config()
    if config.server.store_dir:
        return JsonScanStore(config.server.store_dir)
    return MemoryScanStore()


__all__ = [
    "ScanStore",
    "MemoryScanStore",
    "JsonScanStore",
    "create_store",
]
