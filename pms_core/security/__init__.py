from pms_core.security.permission import (
    READ, WRITE, DELETE, ACTIONS,
    ModulePermission, NO_ACCESS, FULL_ACCESS, READ_WRITE,
    aggregate_permissions, serialize_permissions,
)
from pms_core.security.evaluator import (
    CUSTOM_ROLE, EffectivePermissionMap, DENY_ALL,
    PermissionEvaluator, UserPermissions,
)

__all__ = [
    "READ", "WRITE", "DELETE", "ACTIONS",
    "ModulePermission", "NO_ACCESS", "FULL_ACCESS", "READ_WRITE",
    "aggregate_permissions", "serialize_permissions",
    "CUSTOM_ROLE", "EffectivePermissionMap", "DENY_ALL",
    "PermissionEvaluator", "UserPermissions",
]
