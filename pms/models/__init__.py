# Models
from pms.models.ontology import (
    UserRole, RoomStatus, ReservationStatus,
    Branch, User, RoomType, Room, Guest, Reservation,
)
from pms.models.rbac import CustomRole, RolePermission, UserCustomRole

__all__ = [
    'UserRole', 'RoomStatus', 'ReservationStatus',
    'Branch', 'User', 'RoomType', 'Room', 'Guest', 'Reservation',
    'CustomRole', 'RolePermission', 'UserCustomRole',
]
