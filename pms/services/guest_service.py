"""
客人服务
"""
from typing import Any, Callable, List, Optional
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms.models.ontology import Guest
from pms.models.schemas import GuestCreate
from pms.models.events import DataCategory, data_changed, discard_event


class GuestService:
    """客人服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], Any] = None):
        self.db = db
        self._publish_event = event_publisher or discard_event

    def get_guests(self, branch_id: Optional[int] = None,
                   search: Optional[str] = None) -> List[Guest]:
        query = self.db.query(Guest).filter(Guest.is_active == True)
        if branch_id is not None:
            query = query.filter(Guest.branch_id == branch_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                Guest.first_name.ilike(pattern)
                | Guest.last_name.ilike(pattern)
                | Guest.email.ilike(pattern)
                | Guest.phone.ilike(pattern)
            )
        return query.order_by(Guest.id.desc()).all()

    def get_guest(self, guest_id: int) -> Optional[Guest]:
        return self.db.query(Guest).filter(Guest.id == guest_id).first()

    def create_guest(self, data: GuestCreate) -> Guest:
        if data.branch_id is None:
            raise ValueError("Branch is required")

        guest = Guest(**data.model_dump())
        self.db.add(guest)
        self.db.commit()
        self.db.refresh(guest)
        self._publish_event(data_changed(
            DataCategory.GUESTS, branch_id=guest.branch_id,
            entity_id=guest.id, action="guest_created", source="guest_service",
        ))
        return guest
