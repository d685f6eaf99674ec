from pms_core.engine.event_bus import Event, EventBus, PublishResult

__all__ = ["Event", "EventBus", "PublishResult"]
