"""
房间服务 - 房型与房间
房间创建和状态变更后发布 rooms 数据变更事件（分店范围）
"""
from typing import Any, Callable, List, Optional
import logging
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms.models.ontology import Room, RoomType, RoomStatus
from pms.models.schemas import RoomCreate, RoomTypeCreate
from pms.models.events import DataCategory, data_changed, discard_event

logger = logging.getLogger(__name__)


class RoomService:
    """房间服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], Any] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or discard_event

    # ============== 房型操作 ==============

    def get_room_types(self, branch_id: Optional[int] = None) -> List[RoomType]:
        query = self.db.query(RoomType).filter(RoomType.is_active == True)
        if branch_id is not None:
            query = query.filter((RoomType.branch_id == branch_id) | (RoomType.branch_id.is_(None)))
        return query.order_by(RoomType.id).all()

    def get_room_type(self, room_type_id: int) -> Optional[RoomType]:
        return self.db.query(RoomType).filter(RoomType.id == room_type_id).first()

    def create_room_type(self, data: RoomTypeCreate) -> RoomType:
        room_type = RoomType(**data.model_dump())
        self.db.add(room_type)
        self.db.commit()
        self.db.refresh(room_type)
        self._publish_event(data_changed(
            DataCategory.ROOMS, branch_id=room_type.branch_id,
            entity_id=room_type.id, action="room_type_created", source="room_service",
        ))
        return room_type

    # ============== 房间操作 ==============

    def get_rooms(self, branch_id: Optional[int] = None,
                  status: Optional[RoomStatus] = None) -> List[Room]:
        query = self.db.query(Room).filter(Room.is_active == True)
        if branch_id is not None:
            query = query.filter(Room.branch_id == branch_id)
        if status is not None:
            query = query.filter(Room.status == status)
        return query.order_by(Room.branch_id, Room.number).all()

    def get_room(self, room_id: int) -> Optional[Room]:
        return self.db.query(Room).filter(Room.id == room_id).first()

    def create_room(self, data: RoomCreate) -> Room:
        """创建房间；data.branch_id 必须已确定"""
        if data.branch_id is None:
            raise ValueError("Branch is required")
        if not self.get_room_type(data.room_type_id):
            raise ValueError("Room type not found")
        duplicate = self.db.query(Room).filter(
            Room.branch_id == data.branch_id, Room.number == data.number
        ).first()
        if duplicate:
            raise ValueError(f"Room {data.number} already exists in this branch")

        room = Room(**data.model_dump())
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        self._publish_event(data_changed(
            DataCategory.ROOMS, branch_id=room.branch_id,
            entity_id=room.id, action="room_created", source="room_service",
        ))
        return room

    def update_room_status(self, room_id: int, status: RoomStatus) -> Room:
        room = self.get_room(room_id)
        if not room:
            raise ValueError("Room not found")

        old_status = room.status
        room.status = status
        self.db.commit()
        self.db.refresh(room)
        logger.info(f"Room {room.number} status {old_status} -> {status}")

        self._publish_event(data_changed(
            DataCategory.ROOMS, branch_id=room.branch_id,
            entity_id=room.id, action="status_changed", source="room_service",
        ))
        return room
