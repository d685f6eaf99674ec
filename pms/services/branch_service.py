"""
分店服务
"""
from typing import Any, Callable, List, Optional
from sqlalchemy.orm import Session
from pms_core.engine import Event
from pms.models.ontology import Branch
from pms.models.schemas import BranchCreate
from pms.models.events import DataCategory, data_changed, discard_event


class BranchService:
    """分店服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], Any] = None):
        self.db = db
        self._publish_event = event_publisher or discard_event

    def get_branches(self, branch_id: Optional[int] = None) -> List[Branch]:
        query = self.db.query(Branch).filter(Branch.is_active == True)
        if branch_id is not None:
            query = query.filter(Branch.id == branch_id)
        return query.order_by(Branch.id).all()

    def get_branch(self, branch_id: int) -> Optional[Branch]:
        return self.db.query(Branch).filter(Branch.id == branch_id).first()

    def create_branch(self, data: BranchCreate) -> Branch:
        if self.db.query(Branch).filter(Branch.name == data.name).first():
            raise ValueError(f"Branch '{data.name}' already exists")

        branch = Branch(**data.model_dump())
        self.db.add(branch)
        self.db.commit()
        self.db.refresh(branch)

        # 分店变化影响全局统计
        self._publish_event(data_changed(
            DataCategory.ANALYTICS, entity_id=branch.id, action="branch_created",
            source="branch_service",
        ))
        return branch
