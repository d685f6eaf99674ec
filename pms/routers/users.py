"""
用户管理路由
前缀: /api/users
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pms.database import get_db
from pms.models.ontology import User, UserRole
from pms.models.schemas import UserCreate, UserResponse
from pms.security.auth import require_module_permission, ensure_branch_access, scoped_branch_id
from pms.security.permissions import USERS
from pms.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["用户管理"])


@router.get("", response_model=List[UserResponse])
def list_users(
    branch_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(USERS, "read"))
):
    """获取用户列表；非超级管理员只看到本分店"""
    service = UserService(db)
    users = service.get_users(scoped_branch_id(current_user, branch_id))
    return [UserResponse(**service.get_user_view(u)) for u in users]


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(USERS, "write"))
):
    """创建用户

    非超级管理员只能在本分店创建非超级管理员用户；未指定分店时使用本分店。
    """
    branch_id = data.branch_id
    if current_user.role != UserRole.SUPERADMIN:
        if data.role == UserRole.SUPERADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only superadmins can create superadmin accounts"
            )
        ensure_branch_access(current_user, branch_id)
        branch_id = current_user.branch_id

    service = UserService(db)
    try:
        user = service.create_user(
            email=data.email,
            password=data.password,
            role=data.role,
            branch_id=branch_id,
            first_name=data.first_name,
            last_name=data.last_name,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return UserResponse(**service.get_user_view(user))
