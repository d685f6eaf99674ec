"""
预订管理路由
"""
from typing import Any, Callable, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms.database import get_db
from pms.models.ontology import User, ReservationStatus
from pms.models.schemas import ReservationCreate, ReservationResponse, ReservationStatusUpdate
from pms.routers.deps import get_event_publisher
from pms.security.auth import require_module_permission, ensure_branch_access, scoped_branch_id
from pms.security.permissions import RESERVATIONS
from pms.services.reservation_service import ReservationService

router = APIRouter(prefix="/reservations", tags=["预订管理"])


@router.get("", response_model=List[ReservationResponse])
def list_reservations(
    branch_id: Optional[int] = None,
    status: Optional[ReservationStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(RESERVATIONS, "read"))
):
    """获取预订列表"""
    return ReservationService(db).get_reservations(scoped_branch_id(current_user, branch_id), status)


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(RESERVATIONS, "read"))
):
    reservation = ReservationService(db).get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    ensure_branch_access(current_user, reservation.branch_id)
    return reservation


@router.post("", response_model=ReservationResponse, status_code=201)
def create_reservation(
    data: ReservationCreate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(RESERVATIONS, "write"))
):
    """创建预订"""
    if data.branch_id is None:
        data.branch_id = current_user.branch_id
    ensure_branch_access(current_user, data.branch_id)
    try:
        return ReservationService(db, event_publisher=publish).create_reservation(data, current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{reservation_id}/status", response_model=ReservationResponse)
def update_reservation_status(
    reservation_id: int,
    data: ReservationStatusUpdate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(RESERVATIONS, "write"))
):
    """更新预订状态"""
    service = ReservationService(db, event_publisher=publish)
    reservation = service.get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    ensure_branch_access(current_user, reservation.branch_id)
    return service.update_status(reservation_id, data.status)
