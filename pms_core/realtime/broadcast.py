"""
pms_core/realtime/broadcast.py - 广播通道

将“数据已变更”通知扇出到已连接客户端：
- 序列化一次，逐个连接投递
- 可按分店限定范围
- 发后即忘：无确认、无重试、无积压；错过的消息由客户端轮询兜底
"""
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Dict, Optional
import json
import logging

from pms_core.realtime.registry import ConnectionRegistry, normalize_branch_id

logger = logging.getLogger(__name__)

DATA_UPDATE_EVENT = "data_update"


@dataclass
class BroadcastEvent:
    """广播消息 {event, data, timestamp}"""

    event: str
    data: Dict[str, Any]
    branch_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_message(self) -> str:
        return json.dumps(
            {
                "event": self.event,
                "data": self.data,
                "timestamp": self.timestamp.isoformat(),
            },
            default=str,
        )


class BroadcastChannel:
    """
    广播通道

    Args:
        registry: 连接注册表（由服务端实例持有）

    Example:
        >>> channel = BroadcastChannel(ConnectionRegistry())
        >>> channel.broadcast_data_update("rooms", branch_id=7)
        0
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def broadcast(self, event_name: str, payload: Dict[str, Any],
                  branch_id: Any = None) -> int:
        """
        广播事件

        Args:
            event_name: 事件名
            payload: 事件数据
            branch_id: 可选，只发送给最近声明该分店的连接

        Returns:
            成功投递的连接数
        """
        event = BroadcastEvent(
            event=event_name,
            data=payload,
            branch_id=normalize_branch_id(branch_id),
        )
        try:
            message = event.to_message()
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize broadcast {event_name}: {e}")
            return 0

        delivered = 0
        for connection in self.registry.snapshot():
            if not connection.is_open:
                self.registry.unregister(connection)
                continue
            if not connection.receives(event.branch_id):
                continue
            if connection.deliver(message):
                delivered += 1
            else:
                self.registry.unregister(connection)

        logger.debug(f"Broadcast {event_name} (branch={event.branch_id}) delivered to {delivered} connections")
        return delivered

    def broadcast_data_update(self, category: str, branch_id: Any = None) -> int:
        """广播 data_update 事件，data 为 {type: category}"""
        return self.broadcast(DATA_UPDATE_EVENT, {"type": category}, branch_id)
