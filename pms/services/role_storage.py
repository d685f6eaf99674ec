"""
自定义角色存储 - 角色、角色模块权限、用户角色分配

所有写操作在单个事务中完成：读取方要么看到旧状态，要么看到新状态，
不会看到“已删除、未插入”的中间状态。
写操作提交后发布 permissions 类别的数据变更事件，已连接客户端据此重新获取权限。
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms_core.security import ModulePermission, aggregate_permissions, serialize_permissions
from pms.models.ontology import User
from pms.models.rbac import CustomRole, RolePermission, UserCustomRole
from pms.models.events import DataCategory, data_changed, discard_event
from pms.security.permissions import MODULE_CATALOG, is_known_module

logger = logging.getLogger(__name__)


class TransactionFailure(Exception):
    """存储写事务失败（已回滚），可重试"""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed and was rolled back: {cause}")


def _normalize_grants(permissions: Iterable[Any]) -> List[Tuple[str, ModulePermission]]:
    """校验并规范化 [{module, permissions}]；接受 dict 或带属性的对象"""
    grants: List[Tuple[str, ModulePermission]] = []
    seen = set()
    for item in permissions:
        if isinstance(item, dict):
            module, value = item.get("module"), item.get("permissions")
        else:
            module, value = getattr(item, "module", None), getattr(item, "permissions", None)
        if hasattr(value, "model_dump"):
            value = value.model_dump()

        if not isinstance(module, str) or not is_known_module(module):
            raise ValueError(f"Unknown module '{module}'")
        if module in seen:
            raise ValueError(f"Duplicate module '{module}'")
        permission = ModulePermission.from_value(value)
        if permission is None:
            raise ValueError(f"Invalid permissions for module '{module}'")
        seen.add(module)
        grants.append((module, permission))
    return grants


class RoleStorage:
    """自定义角色存储服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], Any] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or discard_event

    @contextmanager
    def _transaction(self, operation: str):
        try:
            yield
            self.db.commit()
        except IntegrityError as e:
            # 并发写入绕过了预检查（如同名角色），按业务错误处理
            self.db.rollback()
            logger.warning(f"{operation} rejected by a uniqueness constraint: {e.orig}")
            raise ValueError(f"{operation} conflicts with existing data") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{operation} failed, rolled back: {e}", exc_info=True)
            raise TransactionFailure(operation, e) from e
        except Exception:
            self.db.rollback()
            raise

    def _permissions_changed(self, action: str, role_id: Optional[int] = None) -> None:
        self._publish_event(data_changed(
            DataCategory.PERMISSIONS,
            entity_id=role_id,
            action=action,
            source="role_storage",
        ))

    # ============== 角色 ==============

    def get_custom_roles(self) -> List[CustomRole]:
        """获取启用的自定义角色（最新在前）"""
        return self.db.query(CustomRole).filter(
            CustomRole.is_active == True
        ).order_by(CustomRole.created_at.desc(), CustomRole.id.desc()).all()

    def get_all_custom_roles(self) -> List[CustomRole]:
        return self.db.query(CustomRole).order_by(
            CustomRole.created_at.desc(), CustomRole.id.desc()
        ).all()

    def get_custom_role(self, role_id: int) -> Optional[CustomRole]:
        """获取角色及其权限；不存在返回 None"""
        return self.db.query(CustomRole).filter(CustomRole.id == role_id).first()

    def get_custom_role_by_name(self, name: str) -> Optional[CustomRole]:
        return self.db.query(CustomRole).filter(CustomRole.name == name).first()

    def create_custom_role(self, name: str, is_active: bool = True,
                           description: str = "",
                           permissions: Optional[Iterable[Any]] = None) -> CustomRole:
        """创建自定义角色（可同时设置权限）"""
        name = (name or "").strip()
        if not name:
            raise ValueError("Role name is required")
        if len(name) > 100:
            raise ValueError("Role name must be at most 100 characters")
        grants = _normalize_grants(permissions or [])
        if self.get_custom_role_by_name(name):
            raise ValueError(f"Role '{name}' already exists")

        try:
            with self._transaction("create_custom_role"):
                role = CustomRole(name=name, description=description or "", is_active=is_active)
                self.db.add(role)
                self.db.flush()
                for module, permission in grants:
                    self.db.add(RolePermission(
                        role_id=role.id, module=module, permissions=permission.to_dict()
                    ))
        except ValueError as e:
            raise ValueError(f"Role '{name}' already exists") from e

        self.db.refresh(role)
        logger.info(f"Custom role created: {role.name} (id={role.id})")
        self._permissions_changed("role_created", role.id)
        return role

    def update_custom_role(self, role_id: int, **fields) -> CustomRole:
        """更新角色名称/描述/启用状态"""
        role = self.get_custom_role(role_id)
        if not role:
            raise ValueError(f"Role {role_id} not found")

        if "name" in fields and fields["name"] is not None:
            name = fields["name"].strip()
            if not name:
                raise ValueError("Role name is required")
            existing = self.get_custom_role_by_name(name)
            if existing and existing.id != role_id:
                raise ValueError(f"Role '{name}' already exists")
            fields["name"] = name

        with self._transaction("update_custom_role"):
            for key in ("name", "description", "is_active"):
                if key in fields and fields[key] is not None:
                    setattr(role, key, fields[key])
            role.updated_at = datetime.utcnow()

        self.db.refresh(role)
        self._permissions_changed("role_updated", role.id)
        return role

    def delete_custom_role(self, role_id: int) -> bool:
        """删除角色：权限、分配、角色本身在同一事务中删除"""
        role = self.get_custom_role(role_id)
        if not role:
            raise ValueError(f"Role {role_id} not found")

        with self._transaction("delete_custom_role"):
            self.db.query(RolePermission).filter(
                RolePermission.role_id == role_id
            ).delete(synchronize_session=False)
            self.db.query(UserCustomRole).filter(
                UserCustomRole.role_id == role_id
            ).delete(synchronize_session=False)
            self.db.query(CustomRole).filter(
                CustomRole.id == role_id
            ).delete(synchronize_session=False)

        self.db.expire_all()
        logger.info(f"Custom role deleted: id={role_id}")
        self._permissions_changed("role_deleted", role_id)
        return True

    # ============== 角色权限 ==============

    def get_role_permissions(self, role_id: int) -> List[RolePermission]:
        return self.db.query(RolePermission).filter(
            RolePermission.role_id == role_id
        ).order_by(RolePermission.module).all()

    def set_role_permissions(self, role_id: int, permissions: Iterable[Any]) -> List[RolePermission]:
        """整体替换角色权限（先删后插，单事务）；空列表表示清空"""
        role = self.get_custom_role(role_id)
        if not role:
            raise ValueError(f"Role {role_id} not found")
        grants = _normalize_grants(permissions)

        with self._transaction("set_role_permissions"):
            self.db.query(RolePermission).filter(
                RolePermission.role_id == role_id
            ).delete(synchronize_session=False)
            self.db.flush()
            for module, permission in grants:
                self.db.add(RolePermission(
                    role_id=role_id, module=module, permissions=permission.to_dict()
                ))
            role.updated_at = datetime.utcnow()

        self.db.expire(role)
        logger.info(f"Permissions replaced for role {role_id}: {len(grants)} modules")
        self._permissions_changed("permissions_replaced", role_id)
        return self.get_role_permissions(role_id)

    # ============== 用户角色分配 ==============

    def get_user_roles(self, user_id: int) -> List[UserCustomRole]:
        return self.db.query(UserCustomRole).filter(
            UserCustomRole.user_id == user_id
        ).order_by(UserCustomRole.role_id).all()

    def get_user_custom_roles(self, user_id: int) -> List[CustomRole]:
        """用户被分配的启用角色"""
        return self.db.query(CustomRole).join(
            UserCustomRole, UserCustomRole.role_id == CustomRole.id
        ).filter(
            UserCustomRole.user_id == user_id,
            CustomRole.is_active == True,
        ).order_by(CustomRole.id).all()

    def _ensure_user(self, user_id: int) -> None:
        if not self.db.query(User.id).filter(User.id == user_id).first():
            raise ValueError(f"User {user_id} not found")

    def _ensure_roles(self, role_ids: List[int]) -> None:
        if not role_ids:
            return
        found = {
            row.id for row in
            self.db.query(CustomRole.id).filter(CustomRole.id.in_(role_ids)).all()
        }
        missing = [rid for rid in role_ids if rid not in found]
        if missing:
            raise ValueError(f"Unknown role ids: {missing}")

    def assign_roles_to_user(self, user_id: int, role_ids: Iterable[int]) -> List[UserCustomRole]:
        """整体替换用户的角色分配（先删后插，单事务）；空列表表示清空"""
        unique_ids = list(dict.fromkeys(role_ids))
        self._ensure_user(user_id)
        self._ensure_roles(unique_ids)

        with self._transaction("assign_roles_to_user"):
            self.db.query(UserCustomRole).filter(
                UserCustomRole.user_id == user_id
            ).delete(synchronize_session=False)
            self.db.flush()
            for role_id in unique_ids:
                self.db.add(UserCustomRole(user_id=user_id, role_id=role_id))

        self.db.expire_all()
        logger.info(f"Roles replaced for user {user_id}: {unique_ids}")
        self._permissions_changed("user_roles_replaced")
        return self.get_user_roles(user_id)

    def assign_user_to_role(self, user_id: int, role_id: int) -> UserCustomRole:
        """单个分配（已存在则直接返回）"""
        self._ensure_user(user_id)
        self._ensure_roles([role_id])
        existing = self.db.query(UserCustomRole).filter(
            UserCustomRole.user_id == user_id,
            UserCustomRole.role_id == role_id,
        ).first()
        if existing:
            return existing

        with self._transaction("assign_user_to_role"):
            assignment = UserCustomRole(user_id=user_id, role_id=role_id)
            self.db.add(assignment)

        self.db.refresh(assignment)
        self._permissions_changed("user_role_assigned", role_id)
        return assignment

    def remove_user_from_role(self, user_id: int, role_id: int) -> bool:
        """移除单个分配；返回是否存在并被移除"""
        with self._transaction("remove_user_from_role"):
            removed = self.db.query(UserCustomRole).filter(
                UserCustomRole.user_id == user_id,
                UserCustomRole.role_id == role_id,
            ).delete(synchronize_session=False)

        if removed:
            self.db.expire_all()
            self._permissions_changed("user_role_removed", role_id)
        return bool(removed)

    # ============== 聚合权限 ==============

    def get_user_permissions(self, user_id: int) -> Dict[str, Dict[str, bool]]:
        """用户全部启用角色的权限按模块 OR 合并；结果与角色顺序无关"""
        rows = self.db.query(RolePermission.module, RolePermission.permissions).join(
            CustomRole, CustomRole.id == RolePermission.role_id
        ).join(
            UserCustomRole, UserCustomRole.role_id == CustomRole.id
        ).filter(
            UserCustomRole.user_id == user_id,
            CustomRole.is_active == True,
        ).all()
        return serialize_permissions(aggregate_permissions((row.module, row.permissions) for row in rows))

    @staticmethod
    def get_available_modules() -> List[Dict[str, str]]:
        """可授权模块目录"""
        return [dict(module) for module in MODULE_CATALOG]
