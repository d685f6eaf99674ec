"""
测试统一权限评估器（内置角色表 + 自定义角色聚合权限）
"""
import pytest
from pydantic import BaseModel
from typing import Dict, Optional

from pms_core.security import (
    EffectivePermissionMap, PermissionEvaluator, FULL_ACCESS, ModulePermission,
)
from pms.models.ontology import User, UserRole
from pms.security.permissions import (
    evaluator, has_permission, can_access, can_write, can_delete,
    get_module_permissions, MODULE_IDS, BUILTIN_ROLE_MAPS,
)

ACTIONS = ("read", "write", "delete")


class TestBuiltinRoles:
    """内置角色权限表"""

    @pytest.mark.parametrize("module", sorted(MODULE_IDS) + ["not-a-module"])
    def test_superadmin_allows_everything(self, module):
        user = {"role": "superadmin"}
        assert all(has_permission(user, module, action) for action in ACTIONS)

    @pytest.mark.parametrize("module", ["users", "branches", "settings"])
    def test_branch_admin_restricted_modules(self, module):
        user = {"role": "branch-admin"}
        assert not any(has_permission(user, module, action) for action in ACTIONS)

    @pytest.mark.parametrize("module", ["dashboard", "rooms", "inventory-suppliers", "analytics"])
    def test_branch_admin_other_modules(self, module):
        user = {"role": "branch-admin"}
        assert all(has_permission(user, module, action) for action in ACTIONS)

    @pytest.mark.parametrize("module", ["dashboard", "reservations", "rooms", "guests", "billing"])
    def test_front_desk_allowed_modules(self, module):
        user = {"role": "front-desk"}
        assert can_access(user, module)
        assert can_write(user, module)

    def test_front_desk_delete_only_reservations(self):
        user = {"role": "front-desk"}
        assert can_delete(user, "reservations")
        for module in ("dashboard", "rooms", "guests", "billing"):
            assert not can_delete(user, module)

    @pytest.mark.parametrize("module", ["users", "analytics", "restaurant-orders", "settings"])
    def test_front_desk_other_modules_denied(self, module):
        user = {"role": "front-desk"}
        assert not any(has_permission(user, module, action) for action in ACTIONS)

    def test_builtin_roles_ignore_custom_permissions(self):
        user = {"role": "front-desk", "custom_permissions": {"users": {"read": True}}}
        assert not can_access(user, "users")


class TestCustomRoles:
    """自定义角色：按聚合权限评估"""

    def test_grant_lookup(self):
        user = {
            "id": 7,
            "role": "custom",
            "custom_permissions": {
                "reservations": {"read": True, "write": True, "delete": False},
            },
        }
        assert can_access(user, "reservations")
        assert can_write(user, "reservations")
        assert not can_delete(user, "reservations")

    def test_missing_module_denied_and_logged(self, caplog):
        user = {"id": 7, "role": "custom", "custom_permissions": {"rooms": {"read": True}}}
        with caplog.at_level("DEBUG", logger="pms_core.security.evaluator"):
            assert not can_access(user, "billing")
        assert any("billing" in record.getMessage() for record in caplog.records)

    def test_camel_case_field(self):
        user = {"role": "custom", "customPermissions": {"guests": {"read": True}}}
        assert can_access(user, "guests")

    def test_missing_action_key_defaults_false(self):
        user = {"role": "custom", "custom_permissions": {"guests": {"read": True}}}
        assert not can_write(user, "guests")

    def test_no_custom_permissions(self):
        assert not can_access({"role": "custom"}, "dashboard")
        assert not can_access({"role": "custom", "custom_permissions": None}, "dashboard")

    def test_malformed_permissions_denied(self):
        user = {"role": "custom", "custom_permissions": {"rooms": "everything"}}
        assert not can_access(user, "rooms")
        user = {"role": "custom", "custom_permissions": ["rooms"]}
        assert not can_access(user, "rooms")

    def test_unknown_action_denied(self):
        user = {"role": "custom", "custom_permissions": {"rooms": {"read": True, "approve": True}}}
        assert not has_permission(user, "rooms", "approve")


class TestEdgeCases:

    def test_absent_user(self):
        assert not has_permission(None, "dashboard", "read")

    def test_unknown_role(self):
        assert not has_permission({"role": "housekeeper"}, "dashboard", "read")
        assert not has_permission({}, "dashboard", "read")

    def test_unknown_action(self):
        assert not has_permission({"role": "superadmin"}, "dashboard", "export")

    def test_never_raises(self):
        class Exploding:
            @property
            def role(self):
                raise RuntimeError("boom")

        assert has_permission(Exploding(), "dashboard", "read") is False

    def test_orm_user(self):
        user = User(email="a@b.c", password_hash="x", role=UserRole.FRONT_DESK)
        assert can_access(user, "rooms")
        assert not can_access(user, "users")

    def test_pydantic_user(self):
        class UserView(BaseModel):
            role: UserRole
            custom_permissions: Optional[Dict[str, Dict[str, bool]]] = None

        view = UserView(role=UserRole.CUSTOM, custom_permissions={"rooms": {"delete": True}})
        assert can_delete(view, "rooms")
        assert not can_access(view, "rooms")

    def test_helpers_reevaluate_every_call(self):
        user = {"role": "custom", "custom_permissions": {}}
        assert not can_access(user, "rooms")
        user["custom_permissions"] = {"rooms": {"read": True}}
        assert can_access(user, "rooms")

    def test_get_module_permissions(self):
        perms = get_module_permissions({"role": "front-desk"}, "reservations")
        assert perms == ModulePermission(read=True, write=True, delete=True)
        perms = get_module_permissions({"role": "front-desk"}, "rooms")
        assert perms == ModulePermission(read=True, write=True, delete=False)


class TestUnifiedLookup:
    """内置角色与自定义角色走同一条查找路径"""

    def test_builtin_map_equivalent_to_custom_map(self):
        front_desk_map = BUILTIN_ROLE_MAPS["front-desk"]
        custom_user = {
            "role": "custom",
            "custom_permissions": {m: p.to_dict() for m, p in front_desk_map.grants.items()},
        }
        for module in sorted(MODULE_IDS):
            for action in ACTIONS:
                assert (
                    has_permission({"role": "front-desk"}, module, action)
                    == has_permission(custom_user, module, action)
                )

    def test_evaluator_with_custom_table(self):
        local = PermissionEvaluator({"owner": EffectivePermissionMap(default=FULL_ACCESS)})
        assert local.has_permission({"role": "owner"}, "x", "delete")
        assert not local.has_permission({"role": "superadmin"}, "x", "read")

    def test_bind_reads_latest_user(self):
        state = {"user": None}
        perms = evaluator.bind(lambda: state["user"])
        assert not perms.can_access("rooms")
        state["user"] = {"role": "custom", "custom_permissions": {"rooms": {"read": True}}}
        assert perms.can_access("rooms")
        assert perms.user_permissions == {"rooms": {"read": True}}
        state["user"] = {"role": "front-desk"}
        assert perms.user_permissions == {}
