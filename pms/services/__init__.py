# Services
from pms.services.role_storage import RoleStorage, TransactionFailure
from pms.services.user_service import UserService
from pms.services.branch_service import BranchService
from pms.services.room_service import RoomService
from pms.services.guest_service import GuestService
from pms.services.reservation_service import ReservationService

__all__ = [
    'RoleStorage', 'TransactionFailure', 'UserService', 'BranchService',
    'RoomService', 'GuestService', 'ReservationService',
]
