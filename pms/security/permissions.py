"""
集中定义模块目录与内置角色权限表

模块目录是权限评估与自定义角色授权的唯一模块来源，
新功能模块必须加入此目录，否则自定义角色无法授予其访问权限。
"""
from pms_core.security import (
    EffectivePermissionMap, PermissionEvaluator,
    FULL_ACCESS, NO_ACCESS, READ_WRITE,
)
from pms.models.ontology import UserRole

# 酒店
DASHBOARD = "dashboard"
RESERVATIONS = "reservations"
ROOMS = "rooms"
GUESTS = "guests"
BILLING = "billing"
ROOM_TYPES = "room-types"

# 餐厅
RESTAURANT_TABLES = "restaurant-tables"
RESTAURANT_CATEGORIES = "restaurant-categories"
RESTAURANT_DISHES = "restaurant-dishes"
RESTAURANT_ORDERS = "restaurant-orders"
RESTAURANT_BILLING = "restaurant-billing"

# 报表
ANALYTICS = "analytics"
RESTAURANT_ANALYTICS = "restaurant-analytics"

# 库存
INVENTORY_STOCK_CATEGORIES = "inventory-stock-categories"
INVENTORY_STOCK_ITEMS = "inventory-stock-items"
INVENTORY_MEASURING_UNITS = "inventory-measuring-units"
INVENTORY_SUPPLIERS = "inventory-suppliers"
INVENTORY_CONSUMPTION = "inventory-consumption"

# 系统管理
BRANCHES = "branches"
USERS = "users"
TAX_MANAGEMENT = "tax-management"
SETTINGS = "settings"
PROFILE = "profile"
NOTIFICATIONS = "notifications"


MODULE_CATALOG = [
    {"id": DASHBOARD, "name": "Dashboard", "description": "Main dashboard and metrics"},
    {"id": RESERVATIONS, "name": "Reservations", "description": "Hotel reservation management"},
    {"id": ROOMS, "name": "Room Management", "description": "Room and room type management"},
    {"id": GUESTS, "name": "Guest Management", "description": "Guest profiles and history"},
    {"id": BILLING, "name": "Billing", "description": "Hotel billing and payments"},
    {"id": ROOM_TYPES, "name": "Room Types", "description": "Room type configuration"},
    {"id": RESTAURANT_TABLES, "name": "Restaurant Tables", "description": "Restaurant table management"},
    {"id": RESTAURANT_CATEGORIES, "name": "Menu Categories", "description": "Restaurant menu categories"},
    {"id": RESTAURANT_DISHES, "name": "Menu Dishes", "description": "Restaurant menu dishes"},
    {"id": RESTAURANT_ORDERS, "name": "Restaurant Orders", "description": "Restaurant order management"},
    {"id": RESTAURANT_BILLING, "name": "Restaurant Billing", "description": "Restaurant billing system"},
    {"id": ANALYTICS, "name": "PMS Analytics", "description": "Hotel analytics and reports"},
    {"id": RESTAURANT_ANALYTICS, "name": "RMS Analytics", "description": "Restaurant analytics and reports"},
    {"id": INVENTORY_STOCK_CATEGORIES, "name": "Stock Categories", "description": "Inventory stock categories"},
    {"id": INVENTORY_STOCK_ITEMS, "name": "Stock Items", "description": "Inventory stock items"},
    {"id": INVENTORY_MEASURING_UNITS, "name": "Measuring Units", "description": "Inventory measuring units"},
    {"id": INVENTORY_SUPPLIERS, "name": "Suppliers", "description": "Inventory suppliers"},
    {"id": INVENTORY_CONSUMPTION, "name": "Stock Consumption", "description": "Inventory consumption tracking"},
    {"id": BRANCHES, "name": "Branch Management", "description": "Multi-branch management"},
    {"id": USERS, "name": "User Management", "description": "User account management"},
    {"id": TAX_MANAGEMENT, "name": "Tax/Charges", "description": "Tax and charges configuration"},
    {"id": SETTINGS, "name": "Settings", "description": "System settings"},
    {"id": PROFILE, "name": "Profile", "description": "User profile management"},
    {"id": NOTIFICATIONS, "name": "Notifications", "description": "Notification management"},
]

MODULE_IDS = frozenset(m["id"] for m in MODULE_CATALOG)


# 分店管理员不可访问的模块
BRANCH_ADMIN_RESTRICTED = (USERS, BRANCHES, SETTINGS)

# 前台可访问的模块（删除仅限预订）
FRONT_DESK_ALLOWED = (DASHBOARD, RESERVATIONS, ROOMS, GUESTS, BILLING)
FRONT_DESK_DELETABLE = (RESERVATIONS,)


BUILTIN_ROLE_MAPS = {
    # 超级管理员：任何模块（含目录外模块）任何操作
    UserRole.SUPERADMIN.value: EffectivePermissionMap(default=FULL_ACCESS),
    UserRole.BRANCH_ADMIN.value: EffectivePermissionMap(
        grants={module: NO_ACCESS for module in BRANCH_ADMIN_RESTRICTED},
        default=FULL_ACCESS,
    ),
    UserRole.FRONT_DESK.value: EffectivePermissionMap(
        grants={
            module: FULL_ACCESS if module in FRONT_DESK_DELETABLE else READ_WRITE
            for module in FRONT_DESK_ALLOWED
        },
        default=NO_ACCESS,
    ),
}


evaluator = PermissionEvaluator(BUILTIN_ROLE_MAPS, custom_role=UserRole.CUSTOM.value)

has_permission = evaluator.has_permission
can_access = evaluator.can_access
can_write = evaluator.can_write
can_delete = evaluator.can_delete
get_module_permissions = evaluator.get_module_permissions


def is_known_module(module: str) -> bool:
    return module in MODULE_IDS
