"""
用户服务 - 登录认证与当前用户视图
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
from sqlalchemy.orm import Session
from pms.models.ontology import Branch, User, UserRole
from pms.security.auth import get_password_hash, verify_password
from pms.services.role_storage import RoleStorage

logger = logging.getLogger(__name__)


class UserService:
    """用户服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()

    def get_users(self, branch_id: Optional[int] = None) -> List[User]:
        query = self.db.query(User)
        if branch_id is not None:
            query = query.filter(User.branch_id == branch_id)
        return query.order_by(User.id).all()

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """邮箱密码认证；失败返回 None"""
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info(f"Login failed for {email}")
            return None
        if not user.is_active:
            logger.info(f"Login rejected for disabled account {email}")
            return None

        user.last_login = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user

    def create_user(self, email: str, password: str, role: UserRole = UserRole.FRONT_DESK,
                    branch_id: Optional[int] = None, first_name: str = None,
                    last_name: str = None) -> User:
        email = email.strip().lower()
        if self.get_user_by_email(email):
            raise ValueError(f"Email '{email}' is already registered")
        if role != UserRole.SUPERADMIN and branch_id is None:
            raise ValueError("Branch is required for non-superadmin users")
        if branch_id is not None and not self.db.query(Branch).filter(Branch.id == branch_id).first():
            raise ValueError(f"Branch {branch_id} not found")

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            role=role,
            branch_id=branch_id,
            first_name=first_name,
            last_name=last_name,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User created: {user.email} ({user.role.value}, branch={user.branch_id})")
        return user

    def get_user_view(self, user: User) -> Dict[str, Any]:
        """当前用户视图；自定义角色用户附带聚合权限"""
        view = {
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "role": user.role,
            "branch_id": user.branch_id,
            "is_active": user.is_active,
            "last_login": user.last_login,
            "custom_permissions": None,
        }
        if user.role == UserRole.CUSTOM:
            view["custom_permissions"] = RoleStorage(self.db).get_user_permissions(user.id)
        return view
