"""
房间管理路由
非超级管理员只能查看和操作本分店的房间
"""
from typing import Any, Callable, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms.database import get_db
from pms.models.ontology import User, RoomStatus
from pms.models.schemas import (
    RoomTypeCreate, RoomTypeResponse, RoomCreate, RoomResponse, RoomStatusUpdate
)
from pms.routers.deps import get_event_publisher
from pms.security.auth import require_module_permission, ensure_branch_access, scoped_branch_id
from pms.security.permissions import ROOMS, ROOM_TYPES
from pms.services.room_service import RoomService

router = APIRouter(prefix="/rooms", tags=["房间管理"])


# ============== 房型管理 ==============

@router.get("/types", response_model=List[RoomTypeResponse])
def list_room_types(
    branch_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(ROOMS, "read"))
):
    """获取房型"""
    return RoomService(db).get_room_types(scoped_branch_id(current_user, branch_id))


@router.post("/types", response_model=RoomTypeResponse, status_code=201)
def create_room_type(
    data: RoomTypeCreate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(ROOM_TYPES, "write"))
):
    """创建房型"""
    if data.branch_id is None:
        data.branch_id = current_user.branch_id
    ensure_branch_access(current_user, data.branch_id)
    return RoomService(db, event_publisher=publish).create_room_type(data)


# ============== 房间管理 ==============

@router.get("", response_model=List[RoomResponse])
def list_rooms(
    branch_id: Optional[int] = None,
    status: Optional[RoomStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(ROOMS, "read"))
):
    """获取房间列表"""
    return RoomService(db).get_rooms(scoped_branch_id(current_user, branch_id), status)


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(ROOMS, "read"))
):
    """获取房间"""
    room = RoomService(db).get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    ensure_branch_access(current_user, room.branch_id)
    return room


@router.post("", response_model=RoomResponse, status_code=201)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(ROOMS, "write"))
):
    """创建房间"""
    if data.branch_id is None:
        data.branch_id = current_user.branch_id
    ensure_branch_access(current_user, data.branch_id)
    try:
        return RoomService(db, event_publisher=publish).create_room(data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{room_id}/status", response_model=RoomResponse)
def update_room_status(
    room_id: int,
    data: RoomStatusUpdate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(ROOMS, "write"))
):
    """更新房间状态"""
    service = RoomService(db, event_publisher=publish)
    room = service.get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    ensure_branch_access(current_user, room.branch_id)
    return service.update_room_status(room_id, data.status)
