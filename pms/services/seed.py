"""
种子数据 - 空库启动时创建默认分店与超级管理员
"""
import logging
from sqlalchemy.orm import Session
from pms.config import settings
from pms.models.ontology import Branch, User, UserRole
from pms.security.auth import get_password_hash

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = {
    "name": "Main Branch",
    "address": "",
    "phone": "",
    "email": "",
}


def seed_initial_data(db: Session) -> dict:
    """幂等：已存在的数据跳过

    Returns:
        创建数量统计
    """
    stats = {"branches": 0, "users": 0}

    if not db.query(Branch).first():
        db.add(Branch(**DEFAULT_BRANCH))
        stats["branches"] += 1

    if not db.query(User).filter(User.role == UserRole.SUPERADMIN).first():
        db.add(User(
            email=settings.SEED_ADMIN_EMAIL.lower(),
            password_hash=get_password_hash(settings.SEED_ADMIN_PASSWORD),
            first_name="System",
            last_name="Administrator",
            role=UserRole.SUPERADMIN,
        ))
        stats["users"] += 1

    if any(stats.values()):
        db.commit()
        logger.info(f"Seed data created: {stats}")
    return stats
