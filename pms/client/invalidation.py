"""
数据类别 -> 需要失效的查询键

新增数据类别或查询时同步维护此表；未知类别由同步控制器整体失效。
"""
from pms.models.events import DataCategory

AUTH_USER = "/api/auth/user"
ROLES = "/api/roles"
RESERVATIONS = "/api/reservations"
ROOMS = "/api/rooms"
GUESTS = "/api/guests"
DASHBOARD_METRICS = "/api/dashboard/metrics"
SUPER_ADMIN_METRICS = "/api/dashboard/super-admin-metrics"
ANALYTICS_REVENUE = "/api/analytics/revenue"
ANALYTICS_OCCUPANCY = "/api/analytics/occupancy"
ANALYTICS_GUESTS = "/api/analytics/guests"
ANALYTICS_ROOMS = "/api/analytics/rooms"
ANALYTICS_OPERATIONS = "/api/analytics/operations"


CATEGORY_QUERY_KEYS = {
    DataCategory.RESERVATIONS.value: (RESERVATIONS, DASHBOARD_METRICS, SUPER_ADMIN_METRICS),
    DataCategory.ROOMS.value: (ROOMS, DASHBOARD_METRICS, ANALYTICS_ROOMS),
    DataCategory.GUESTS.value: (GUESTS, ANALYTICS_GUESTS),
    DataCategory.ANALYTICS.value: (
        ANALYTICS_REVENUE,
        ANALYTICS_OCCUPANCY,
        ANALYTICS_GUESTS,
        ANALYTICS_ROOMS,
        ANALYTICS_OPERATIONS,
    ),
    DataCategory.PERMISSIONS.value: (AUTH_USER, ROLES),
}

# 启动同步与轮询失效的固定键
INITIAL_SYNC_KEYS = (
    DASHBOARD_METRICS,
    SUPER_ADMIN_METRICS,
    RESERVATIONS,
    ROOMS,
    GUESTS,
    ANALYTICS_REVENUE,
    ANALYTICS_OCCUPANCY,
    ANALYTICS_GUESTS,
    ANALYTICS_ROOMS,
    ANALYTICS_OPERATIONS,
)
