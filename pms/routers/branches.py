"""
分店管理路由
"""
from typing import Any, Callable, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms.database import get_db
from pms.models.ontology import User, UserRole
from pms.models.schemas import BranchCreate, BranchResponse
from pms.routers.deps import get_event_publisher
from pms.security.auth import get_current_user, require_module_permission
from pms.security.permissions import BRANCHES
from pms.services.branch_service import BranchService

router = APIRouter(prefix="/branches", tags=["分店管理"])


@router.get("", response_model=List[BranchResponse])
def list_branches(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取分店列表；非超级管理员只看到本分店"""
    service = BranchService(db)
    if current_user.role == UserRole.SUPERADMIN:
        return service.get_branches()
    if current_user.branch_id is None:
        return []
    return service.get_branches(current_user.branch_id)


@router.post("", response_model=BranchResponse, status_code=201)
def create_branch(
    data: BranchCreate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(BRANCHES, "write"))
):
    """创建分店"""
    try:
        return BranchService(db, event_publisher=publish).create_branch(data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
