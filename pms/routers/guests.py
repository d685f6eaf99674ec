"""
客人管理路由
"""
from typing import Any, Callable, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms.database import get_db
from pms.models.ontology import User
from pms.models.schemas import GuestCreate, GuestResponse
from pms.routers.deps import get_event_publisher
from pms.security.auth import require_module_permission, ensure_branch_access, scoped_branch_id
from pms.security.permissions import GUESTS
from pms.services.guest_service import GuestService

router = APIRouter(prefix="/guests", tags=["客人管理"])


@router.get("", response_model=List[GuestResponse])
def list_guests(
    branch_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(GUESTS, "read"))
):
    """获取客人列表"""
    return GuestService(db).get_guests(scoped_branch_id(current_user, branch_id), search)


@router.get("/{guest_id}", response_model=GuestResponse)
def get_guest(
    guest_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(GUESTS, "read"))
):
    guest = GuestService(db).get_guest(guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found")
    ensure_branch_access(current_user, guest.branch_id)
    return guest


@router.post("", response_model=GuestResponse, status_code=201)
def create_guest(
    data: GuestCreate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(GUESTS, "write"))
):
    """创建客人"""
    if data.branch_id is None:
        data.branch_id = current_user.branch_id
    ensure_branch_access(current_user, data.branch_id)
    try:
        return GuestService(db, event_publisher=publish).create_guest(data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
