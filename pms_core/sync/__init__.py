from pms_core.sync.query_cache import CacheEntry, QueryCache, key_matches
from pms_core.sync.connection import ConnectionState, RealtimeConnection
from pms_core.sync.controller import SyncController

__all__ = [
    "CacheEntry",
    "QueryCache",
    "key_matches",
    "ConnectionState",
    "RealtimeConnection",
    "SyncController",
]
