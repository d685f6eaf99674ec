from pms_core.realtime.registry import ClientConnection, ConnectionRegistry, normalize_branch_id
from pms_core.realtime.broadcast import BroadcastChannel, BroadcastEvent, DATA_UPDATE_EVENT

__all__ = [
    "ClientConnection",
    "ConnectionRegistry",
    "normalize_branch_id",
    "BroadcastChannel",
    "BroadcastEvent",
    "DATA_UPDATE_EVENT",
]
