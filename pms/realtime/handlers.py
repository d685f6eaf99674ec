"""
事件处理器 - 将数据变更事件转发为实时广播
"""
import logging
from pms_core.engine import Event, EventBus
from pms_core.realtime import BroadcastChannel
from pms.models.events import EventType

logger = logging.getLogger(__name__)


def register_realtime_handlers(event_bus: EventBus, channel: BroadcastChannel):
    """订阅 data.changed，转发为 data_update 广播

    分店数据按分店范围广播；branch_id 为空（如权限变更）时全局广播。
    """

    def forward_data_changed(event: Event) -> None:
        category = event.data.get("category")
        if not category:
            logger.warning(f"data.changed event {event.event_id} has no category, dropped")
            return
        delivered = channel.broadcast_data_update(category, event.data.get("branch_id"))
        logger.debug(f"Forwarded {category} change from {event.source or 'unknown'} to {delivered} clients")

    event_bus.subscribe(EventType.DATA_CHANGED.value, forward_data_changed)
    return forward_data_changed
