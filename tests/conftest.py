"""
Pytest 配置和共享 fixtures
"""
import os

# 应用生命周期使用的默认库；测试数据库由 db_session 另行提供
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from pms.database import Base, get_db
from pms.models import ontology, rbac  # noqa: F401
from pms.models.ontology import Branch, User, UserRole, RoomType, Room, Guest
from pms.security.auth import get_password_hash, create_access_token
from pms.main import app


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端（运行应用生命周期）"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 分店 ==============

@pytest.fixture
def branch(db_session):
    branch = Branch(name="Downtown")
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


@pytest.fixture
def other_branch(db_session):
    branch = Branch(name="Airport")
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


# ============== 用户与认证 ==============

def make_user(db_session, email, role, branch_id=None, password="secret123"):
    user = User(
        email=email,
        password_hash=get_password_hash(password),
        first_name=email.split("@")[0],
        last_name="Test",
        role=role,
        branch_id=branch_id,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def headers_for(user):
    token = create_access_token(user.id, user.role, user.branch_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_factory(db_session):
    """按需创建用户"""
    def factory(email, role, branch_id=None, password="secret123"):
        return make_user(db_session, email, role, branch_id, password)
    return factory


@pytest.fixture
def auth_headers_for():
    return headers_for


@pytest.fixture
def superadmin(db_session):
    return make_user(db_session, "root@hotel.test", UserRole.SUPERADMIN)


@pytest.fixture
def branch_admin(db_session, branch):
    return make_user(db_session, "manager@hotel.test", UserRole.BRANCH_ADMIN, branch.id)


@pytest.fixture
def front_desk(db_session, branch):
    return make_user(db_session, "desk@hotel.test", UserRole.FRONT_DESK, branch.id)


@pytest.fixture
def custom_user(db_session, branch):
    return make_user(db_session, "custom@hotel.test", UserRole.CUSTOM, branch.id)


@pytest.fixture
def superadmin_headers(superadmin):
    return headers_for(superadmin)


@pytest.fixture
def branch_admin_headers(branch_admin):
    return headers_for(branch_admin)


@pytest.fixture
def front_desk_headers(front_desk):
    return headers_for(front_desk)


@pytest.fixture
def custom_headers(custom_user):
    return headers_for(custom_user)


# ============== 实体 ==============

@pytest.fixture
def room_type(db_session, branch):
    from decimal import Decimal
    room_type = RoomType(name="Standard", base_price=Decimal("120.00"), max_occupancy=2, branch_id=branch.id)
    db_session.add(room_type)
    db_session.commit()
    db_session.refresh(room_type)
    return room_type


@pytest.fixture
def room(db_session, branch, room_type):
    room = Room(number="101", floor=1, room_type_id=room_type.id, branch_id=branch.id)
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def other_branch_room(db_session, other_branch, room_type):
    room = Room(number="201", floor=2, room_type_id=room_type.id, branch_id=other_branch.id)
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def guest(db_session, branch):
    guest = Guest(first_name="Ada", last_name="Lovelace", email="ada@example.com", branch_id=branch.id)
    db_session.add(guest)
    db_session.commit()
    db_session.refresh(guest)
    return guest
