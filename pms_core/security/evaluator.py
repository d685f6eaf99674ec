"""
pms_core/security/evaluator.py - 统一权限评估器

所有角色都通过同一条查找路径评估：
    用户 -> EffectivePermissionMap -> ModulePermission -> allows(action)

内置角色由 app 层提供静态映射（显式模块授权 + 未列出模块的默认三元组）；
自定义角色用户的映射由聚合权限视图构造，默认三元组为全 False。
评估器从不抛异常，任何缺失或异常数据都判定为无权限（fail closed）。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional
import logging

from pms_core.security.permission import (
    READ, WRITE, DELETE, ModulePermission, NO_ACCESS,
)

logger = logging.getLogger(__name__)

CUSTOM_ROLE = "custom"


@dataclass(frozen=True)
class EffectivePermissionMap:
    """
    有效权限映射

    Attributes:
        grants: 模块名 -> 显式授权
        default: 未出现在 grants 中的模块使用的三元组
    """

    grants: Mapping[str, ModulePermission] = field(default_factory=dict)
    default: ModulePermission = NO_ACCESS

    def lookup(self, module: str) -> ModulePermission:
        return self.grants.get(module, self.default)

    def allows(self, module: str, action: str) -> bool:
        return self.lookup(module).allows(action)

    def has_grant(self, module: str) -> bool:
        return module in self.grants

    @classmethod
    def from_aggregated(cls, permissions: Any) -> "EffectivePermissionMap":
        """由聚合权限视图 {module: {read, write, delete}} 构造

        无法解析的条目视为不存在。
        """
        if not isinstance(permissions, Mapping):
            return DENY_ALL
        grants: Dict[str, ModulePermission] = {}
        for module, value in permissions.items():
            parsed = ModulePermission.from_value(value)
            if parsed is not None:
                grants[str(module)] = parsed
        return cls(grants=grants, default=NO_ACCESS)


DENY_ALL = EffectivePermissionMap()


def _read_field(user: Any, *names: str) -> Any:
    """兼容 dict / ORM 对象 / pydantic 模型的字段读取"""
    for name in names:
        if isinstance(user, Mapping):
            if name in user:
                return user[name]
        elif hasattr(user, name):
            return getattr(user, name)
    return None


def _role_of(user: Any) -> Optional[str]:
    role = _read_field(user, "role")
    if isinstance(role, Enum):
        role = role.value
    return role if isinstance(role, str) else None


class PermissionEvaluator:
    """
    权限评估器

    Args:
        builtin_maps: 内置角色名 -> 静态有效权限映射
        custom_role: 走自定义角色聚合路径的角色值

    Example:
        >>> evaluator = PermissionEvaluator({"superadmin": EffectivePermissionMap(default=FULL_ACCESS)})
        >>> evaluator.has_permission({"role": "superadmin"}, "anything", "delete")
        True
    """

    def __init__(self, builtin_maps: Mapping[str, EffectivePermissionMap],
                 custom_role: str = CUSTOM_ROLE):
        self._builtin_maps = dict(builtin_maps)
        self._custom_role = custom_role

    def resolve(self, user: Any) -> EffectivePermissionMap:
        """解析用户的有效权限映射（每次调用都重新计算）"""
        if user is None:
            return DENY_ALL
        role = _role_of(user)
        if role is None:
            return DENY_ALL
        if role in self._builtin_maps:
            return self._builtin_maps[role]
        if role == self._custom_role:
            custom = _read_field(user, "custom_permissions", "customPermissions")
            return EffectivePermissionMap.from_aggregated(custom)
        return DENY_ALL

    def has_permission(self, user: Any, module: str, action: str) -> bool:
        """检查用户对模块的操作权限"""
        try:
            permission_map = self.resolve(user)
            if (
                user is not None
                and _role_of(user) == self._custom_role
                and not permission_map.has_grant(module)
            ):
                logger.debug(
                    f"No custom permission entry for module {module!r} "
                    f"(user {_read_field(user, 'id')})"
                )
            return permission_map.allows(module, action)
        except Exception as e:
            logger.warning(f"Permission evaluation failed, denying access: {e}", exc_info=True)
            return False

    def can_access(self, user: Any, module: str) -> bool:
        return self.has_permission(user, module, READ)

    def can_write(self, user: Any, module: str) -> bool:
        return self.has_permission(user, module, WRITE)

    def can_delete(self, user: Any, module: str) -> bool:
        return self.has_permission(user, module, DELETE)

    def get_module_permissions(self, user: Any, module: str) -> ModulePermission:
        return ModulePermission(
            read=self.has_permission(user, module, READ),
            write=self.has_permission(user, module, WRITE),
            delete=self.has_permission(user, module, DELETE),
        )

    def bind(self, get_user: Callable[[], Any]) -> "UserPermissions":
        """绑定到一个用户来源，用于客户端持续读取最新用户数据"""
        return UserPermissions(self, get_user)


class UserPermissions:
    """绑定到当前用户的权限检查接口

    每次检查都通过 get_user() 取最新用户数据，不缓存结果。
    """

    def __init__(self, evaluator: PermissionEvaluator, get_user: Callable[[], Any]):
        self._evaluator = evaluator
        self._get_user = get_user

    def has_permission(self, module: str, action: str) -> bool:
        return self._evaluator.has_permission(self._get_user(), module, action)

    def can_access(self, module: str) -> bool:
        return self.has_permission(module, READ)

    def can_write(self, module: str) -> bool:
        return self.has_permission(module, WRITE)

    def can_delete(self, module: str) -> bool:
        return self.has_permission(module, DELETE)

    def get_module_permissions(self, module: str) -> ModulePermission:
        return self._evaluator.get_module_permissions(self._get_user(), module)

    @property
    def user_permissions(self) -> Dict[str, Any]:
        """用户的自定义权限原始数据（无则为空 dict）"""
        user = self._get_user()
        if user is None:
            return {}
        custom = _read_field(user, "custom_permissions", "customPermissions")
        return dict(custom) if isinstance(custom, Mapping) else {}


__all__ = [
    "CUSTOM_ROLE",
    "EffectivePermissionMap",
    "DENY_ALL",
    "PermissionEvaluator",
    "UserPermissions",
]
