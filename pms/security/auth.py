"""
认证与授权模块

JWT 认证 + 模块级权限检查。
模块权限检查与客户端使用同一个评估器（pms.security.permissions.evaluator），
自定义角色用户的权限在每次请求时从数据库重新聚合。
"""
import bcrypt
import logging
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from pms.config import settings
from pms.database import get_db
from pms.models.ontology import User, UserRole
from pms.security.permissions import has_permission

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_password_hash(password: str) -> str:
    """密码哈希"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_access_token(user_id: int, role: UserRole,
                        branch_id: Optional[int] = None) -> str:
    """创建 JWT token"""
    expire = datetime.now(UTC) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode = {
        "sub": str(user_id),
        "role": role.value if isinstance(role, UserRole) else str(role),
        "exp": expire
    }
    if branch_id is not None:
        to_encode["branch_id"] = branch_id
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """解码 JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )


def authenticate_token(token: str, db: Session) -> User:
    """根据 token 取得有效用户（HTTP 与 WebSocket 共用）"""
    payload = decode_token(token)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled"
        )
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """获取当前登录用户"""
    return authenticate_token(credentials.credentials, db)


def build_permission_subject(user: User, db: Session) -> Dict[str, Any]:
    """构造评估器使用的用户视图；自定义角色用户附带聚合权限"""
    subject: Dict[str, Any] = {
        "id": user.id,
        "role": user.role.value if isinstance(user.role, UserRole) else user.role,
        "branch_id": user.branch_id,
    }
    if user.role == UserRole.CUSTOM:
        from pms.services.role_storage import RoleStorage
        subject["custom_permissions"] = RoleStorage(db).get_user_permissions(user.id)
    return subject


def require_module_permission(module: str, action: str):
    """模块权限检查

    与客户端相同的评估规则：超级管理员全部放行、分店管理员排除受限模块、
    前台仅限固定模块、自定义角色按聚合权限。
    """
    async def permission_checker(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        subject = build_permission_subject(current_user, db)
        if not has_permission(subject, module, action):
            logger.info(f"Denied {action} on {module} for user {current_user.id} ({subject['role']})")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {module}:{action}"
            )
        return current_user
    return permission_checker


def check_branch_access(user: User, target_branch_id: Optional[int]) -> bool:
    """分店隔离检查：超级管理员不受限，其他用户只能操作所属分店"""
    if user.role == UserRole.SUPERADMIN:
        return True
    if target_branch_id is None:
        return True
    return user.branch_id == target_branch_id


def ensure_branch_access(user: User, target_branch_id: Optional[int]) -> None:
    if not check_branch_access(user, target_branch_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions for this branch"
        )


def scoped_branch_id(user: User, requested: Optional[int] = None) -> Optional[int]:
    """列表查询使用的分店过滤：超级管理员可指定任意分店或全部"""
    if user.role == UserRole.SUPERADMIN:
        return requested
    return user.branch_id
