"""
pms_core/security/permission.py - 模块权限三元组与聚合

每个模块的权限是 {read, write, delete} 三元组。
多个角色的授权按模块做 OR 合并（交换律/结合律成立，结果与遍历顺序无关）。
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

READ = "read"
WRITE = "write"
DELETE = "delete"
ACTIONS: Tuple[str, ...] = (READ, WRITE, DELETE)


@dataclass(frozen=True)
class ModulePermission:
    """单个模块的权限三元组"""

    read: bool = False
    write: bool = False
    delete: bool = False

    def allows(self, action: str) -> bool:
        """是否允许指定操作；未知操作一律拒绝"""
        if action not in ACTIONS:
            return False
        return bool(getattr(self, action))

    def merge(self, other: "ModulePermission") -> "ModulePermission":
        """OR 合并两个三元组"""
        return ModulePermission(
            read=self.read or other.read,
            write=self.write or other.write,
            delete=self.delete or other.delete,
        )

    def to_dict(self) -> Dict[str, bool]:
        return {READ: self.read, WRITE: self.write, DELETE: self.delete}

    @classmethod
    def from_value(cls, value: Any) -> Optional["ModulePermission"]:
        """从存储/传输格式解析；无法识别的格式返回 None

        只有布尔值 True 视为授予；"yes"、1 等其他真值一律按未授予处理。
        """
        if isinstance(value, ModulePermission):
            return value
        if isinstance(value, Mapping):
            return cls(
                read=value.get(READ) is True,
                write=value.get(WRITE) is True,
                delete=value.get(DELETE) is True,
            )
        return None


NO_ACCESS = ModulePermission()
FULL_ACCESS = ModulePermission(read=True, write=True, delete=True)
READ_WRITE = ModulePermission(read=True, write=True)


def aggregate_permissions(
    grants: Iterable[Tuple[str, Any]],
) -> Dict[str, ModulePermission]:
    """按模块 OR 合并 (module, permissions) 序列

    Args:
        grants: (模块名, 权限三元组) 序列，通常来自用户全部有效角色的授权行

    Returns:
        模块名 -> 合并后的 ModulePermission；未出现的模块不在结果中
    """
    aggregated: Dict[str, ModulePermission] = {}
    for module, value in grants:
        permission = ModulePermission.from_value(value)
        if permission is None:
            logger.warning(f"Ignoring malformed permission grant for module {module!r}: {value!r}")
            continue
        current = aggregated.get(module, NO_ACCESS)
        aggregated[module] = current.merge(permission)
    return aggregated


def serialize_permissions(permissions: Mapping[str, ModulePermission]) -> Dict[str, Dict[str, bool]]:
    """转换为 JSON 友好格式 {module: {read, write, delete}}"""
    return {module: perm.to_dict() for module, perm in permissions.items()}


__all__ = [
    "READ",
    "WRITE",
    "DELETE",
    "ACTIONS",
    "ModulePermission",
    "NO_ACCESS",
    "FULL_ACCESS",
    "READ_WRITE",
    "aggregate_permissions",
    "serialize_permissions",
]
