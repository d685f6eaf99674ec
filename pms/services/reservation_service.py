"""
预订服务
预订创建与状态变更后发布 reservations 数据变更事件（分店范围）
"""
from typing import Any, Callable, List, Optional
import logging
import time
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms.models.ontology import Guest, Reservation, ReservationStatus
from pms.models.schemas import ReservationCreate
from pms.models.events import DataCategory, data_changed, discard_event

logger = logging.getLogger(__name__)


class ReservationService:
    """预订服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], Any] = None):
        self.db = db
        self._publish_event = event_publisher or discard_event

    def get_reservations(self, branch_id: Optional[int] = None,
                         status: Optional[ReservationStatus] = None) -> List[Reservation]:
        query = self.db.query(Reservation)
        if branch_id is not None:
            query = query.filter(Reservation.branch_id == branch_id)
        if status is not None:
            query = query.filter(Reservation.status == status)
        return query.order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()

    def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        return self.db.query(Reservation).filter(Reservation.id == reservation_id).first()

    def _generate_confirmation_number(self) -> str:
        """RES + 毫秒时间戳后 8 位；冲突时顺延"""
        seed = int(time.time() * 1000) % 100_000_000
        for offset in range(1000):
            number = f"RES{(seed + offset) % 100_000_000:08d}"
            exists = self.db.query(Reservation.id).filter(
                Reservation.confirmation_number == number
            ).first()
            if not exists:
                return number
        raise ValueError("Unable to allocate a confirmation number")

    def create_reservation(self, data: ReservationCreate, created_by_id: int) -> Reservation:
        if data.branch_id is None:
            raise ValueError("Branch is required")
        guest = self.db.query(Guest).filter(Guest.id == data.guest_id).first()
        if not guest:
            raise ValueError("Guest not found")
        if guest.branch_id != data.branch_id:
            raise ValueError("Guest belongs to another branch")

        reservation = Reservation(
            **data.model_dump(),
            confirmation_number=self._generate_confirmation_number(),
            created_by_id=created_by_id,
        )
        guest.reservation_count = (guest.reservation_count or 0) + 1
        self.db.add(reservation)
        self.db.commit()
        self.db.refresh(reservation)
        logger.info(f"Reservation {reservation.confirmation_number} created in branch {reservation.branch_id}")

        self._publish_event(data_changed(
            DataCategory.RESERVATIONS, branch_id=reservation.branch_id,
            entity_id=reservation.id, action="reservation_created", source="reservation_service",
        ))
        return reservation

    def update_status(self, reservation_id: int, status: ReservationStatus) -> Reservation:
        reservation = self.get_reservation(reservation_id)
        if not reservation:
            raise ValueError("Reservation not found")

        reservation.status = status
        self.db.commit()
        self.db.refresh(reservation)
        self._publish_event(data_changed(
            DataCategory.RESERVATIONS, branch_id=reservation.branch_id,
            entity_id=reservation.id, action="status_changed", source="reservation_service",
        ))
        return reservation
