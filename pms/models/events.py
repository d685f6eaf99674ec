"""
领域事件定义 (Domain Events)
写操作提交后发布 data.changed 事件，由实时推送转换为 data_update 广播
"""
from enum import Enum
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any
from pms_core.engine import Event


class EventType(str, Enum):
    """事件类型枚举"""
    DATA_CHANGED = "data.changed"


class DataCategory(str, Enum):
    """数据类别（广播 data.type）

    客户端按类别决定失效哪些查询；新增类别需同步更新 pms.client.invalidation。
    """
    RESERVATIONS = "reservations"
    ROOMS = "rooms"
    GUESTS = "guests"
    ANALYTICS = "analytics"
    PERMISSIONS = "permissions"


@dataclass
class DataChangedData:
    """数据变更事件数据

    branch_id 为 None 表示全局广播（如权限变更）
    """
    category: DataCategory
    branch_id: Optional[int] = None
    entity_id: Optional[int] = None
    action: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["category"] = self.category.value
        return result


def data_changed(category: DataCategory, branch_id: Optional[int] = None,
                 entity_id: Optional[int] = None, action: str = "",
                 source: str = "") -> Event:
    """构造 data.changed 事件"""
    return Event(
        event_type=EventType.DATA_CHANGED.value,
        data=DataChangedData(
            category=category,
            branch_id=branch_id,
            entity_id=entity_id,
            action=action,
        ).to_dict(),
        source=source,
    )


def discard_event(event: Event) -> None:
    """未配置事件总线时的发布器（脚本、种子数据）"""
    return None
