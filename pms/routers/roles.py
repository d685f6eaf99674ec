"""
自定义角色路由 - 角色管理 + 角色权限 + 用户角色分配
前缀: /api/roles, /api/users
"""
from typing import Any, Callable, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from pms_core.engine import Event
from pms.database import get_db
from pms.models.ontology import User
from pms.models.schemas import (
    RoleCreate, RoleUpdate, RoleResponse, RoleDetailResponse,
    RolePermissionsReplace, RolePermissionResponse, ModuleInfo, UserRoleAssign,
)
from pms.routers.deps import get_event_publisher
from pms.security.auth import get_current_user, require_module_permission, build_permission_subject
from pms.security.permissions import USERS, has_permission
from pms.services.role_storage import RoleStorage, TransactionFailure


def _transaction_failed(e: TransactionFailure) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"{e.operation} failed, no changes were saved. Please retry.",
    )


# ========== Role Router ==========

role_router = APIRouter(prefix="/roles", tags=["角色管理"])


@role_router.get("", response_model=List[RoleResponse])
def list_roles(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(USERS, "read")),
):
    """获取自定义角色列表（默认仅启用的）"""
    storage = RoleStorage(db)
    roles = storage.get_all_custom_roles() if include_inactive else storage.get_custom_roles()
    return [RoleResponse.model_validate(r) for r in roles]


@role_router.get("/modules", response_model=List[ModuleInfo])
def list_modules(
    current_user: User = Depends(require_module_permission(USERS, "read")),
):
    """可授权模块目录"""
    return RoleStorage.get_available_modules()


@role_router.get("/{role_id}", response_model=RoleDetailResponse)
def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(USERS, "read")),
):
    """获取角色详情（含权限列表）"""
    role = RoleStorage(db).get_custom_role(role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return RoleDetailResponse.model_validate(role)


@role_router.post("", response_model=RoleDetailResponse, status_code=201)
def create_role(
    data: RoleCreate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(USERS, "write")),
):
    """创建角色"""
    storage = RoleStorage(db, event_publisher=publish)
    try:
        role = storage.create_custom_role(
            name=data.name,
            is_active=data.is_active,
            description=data.description,
            permissions=data.permissions,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransactionFailure as e:
        raise _transaction_failed(e)
    return RoleDetailResponse.model_validate(role)


@role_router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int,
    data: RoleUpdate,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(USERS, "write")),
):
    """更新角色"""
    storage = RoleStorage(db, event_publisher=publish)
    if not storage.get_custom_role(role_id):
        raise HTTPException(status_code=404, detail="Role not found")
    try:
        role = storage.update_custom_role(role_id, **data.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransactionFailure as e:
        raise _transaction_failed(e)
    return RoleResponse.model_validate(role)


@role_router.delete("/{role_id}", status_code=204)
def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(USERS, "delete")),
):
    """删除角色（连同权限与用户分配）"""
    storage = RoleStorage(db, event_publisher=publish)
    if not storage.get_custom_role(role_id):
        raise HTTPException(status_code=404, detail="Role not found")
    try:
        storage.delete_custom_role(role_id)
    except TransactionFailure as e:
        raise _transaction_failed(e)
    return Response(status_code=204)


@role_router.put("/{role_id}/permissions", response_model=List[RolePermissionResponse])
def replace_role_permissions(
    role_id: int,
    data: RolePermissionsReplace,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(USERS, "write")),
):
    """整体替换角色权限"""
    storage = RoleStorage(db, event_publisher=publish)
    if not storage.get_custom_role(role_id):
        raise HTTPException(status_code=404, detail="Role not found")
    try:
        rows = storage.set_role_permissions(role_id, data.permissions)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransactionFailure as e:
        raise _transaction_failed(e)
    return [RolePermissionResponse.model_validate(r) for r in rows]


# ========== User-Role Router ==========

user_role_router = APIRouter(prefix="/users", tags=["用户角色"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@user_role_router.get("/{user_id}/roles", response_model=List[RoleResponse])
def get_user_roles(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_module_permission(USERS, "read")),
):
    """获取用户的自定义角色"""
    _get_user_or_404(db, user_id)
    return [RoleResponse.model_validate(r) for r in RoleStorage(db).get_user_custom_roles(user_id)]


@user_role_router.put("/{user_id}/roles", response_model=List[RoleResponse])
def assign_user_roles(
    user_id: int,
    data: UserRoleAssign,
    db: Session = Depends(get_db),
    publish: Callable[[Event], Any] = Depends(get_event_publisher),
    current_user: User = Depends(require_module_permission(USERS, "write")),
):
    """整体替换用户的自定义角色"""
    _get_user_or_404(db, user_id)
    storage = RoleStorage(db, event_publisher=publish)
    try:
        storage.assign_roles_to_user(user_id, data.role_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransactionFailure as e:
        raise _transaction_failed(e)
    return [RoleResponse.model_validate(r) for r in storage.get_user_custom_roles(user_id)]


@user_role_router.get("/{user_id}/permissions")
def get_user_permissions(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Dict[str, bool]]:
    """用户聚合权限（本人或有用户管理读权限者可查看）"""
    if user_id != current_user.id:
        subject = build_permission_subject(current_user, db)
        if not has_permission(subject, USERS, "read"):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {USERS}:read"
            )
    _get_user_or_404(db, user_id)
    return RoleStorage(db).get_user_permissions(user_id)
