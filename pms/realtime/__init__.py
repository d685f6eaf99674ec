from pms.realtime.handlers import register_realtime_handlers
from pms.realtime.websocket import realtime_endpoint, handle_inbound

__all__ = ["register_realtime_handlers", "realtime_endpoint", "handle_inbound"]
