"""
业务对象定义
多分店酒店/餐厅管理：分店、用户、房型、房间、客人、预订
所有分店内数据带 branch_id，用于分店隔离与分店范围的实时推送
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text,
    Enum as SQLEnum, Boolean, Numeric
)
from sqlalchemy.orm import relationship
from pms.database import Base


# ============== 枚举定义 ==============

class UserRole(str, Enum):
    """用户角色

    前三个为内置角色；CUSTOM 表示按自定义角色聚合权限评估。
    """
    SUPERADMIN = "superadmin"      # 超级管理员
    BRANCH_ADMIN = "branch-admin"  # 分店管理员
    FRONT_DESK = "front-desk"      # 前台
    CUSTOM = "custom"              # 自定义角色


class RoomStatus(str, Enum):
    """房间状态枚举"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    HOUSEKEEPING = "housekeeping"
    OUT_OF_ORDER = "out-of-order"
    RESERVED = "reserved"


class ReservationStatus(str, Enum):
    """预订状态枚举"""
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ============== 对象定义 ==============

class Branch(Base):
    """分店"""
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    phone = Column(String(50))
    email = Column(String(255))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="branch")
    rooms = relationship("Room", back_populates="branch")


class User(Base):
    """
    系统用户
    role 为内置角色之一；role == custom 时通过 user_custom_roles 聚合权限
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    role = Column(
        SQLEnum(UserRole, values_callable=_enum_values),
        nullable=False,
        default=UserRole.FRONT_DESK,
    )
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    branch = relationship("Branch", back_populates="users")
    custom_roles = relationship(
        "UserCustomRole",
        back_populates="user",
        cascade="all, delete-orphan",
    )


class RoomType(Base):
    """房型"""
    __tablename__ = "room_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    base_price = Column(Numeric(10, 2), nullable=False)
    max_occupancy = Column(Integer, nullable=False, default=2)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    rooms = relationship("Room", back_populates="room_type")


class Room(Base):
    """房间"""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(20), nullable=False)
    floor = Column(Integer)
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)
    status = Column(
        SQLEnum(RoomStatus, values_callable=_enum_values),
        nullable=False,
        default=RoomStatus.AVAILABLE,
    )
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room_type = relationship("RoomType", back_populates="rooms")
    branch = relationship("Branch", back_populates="rooms")


class Guest(Base):
    """客人"""
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    nationality = Column(String(100))
    reservation_count = Column(Integer, nullable=False, default=0)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reservations = relationship("Reservation", back_populates="guest")


class Reservation(Base):
    """预订"""
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    confirmation_number = Column(String(20), unique=True, nullable=False)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)
    status = Column(
        SQLEnum(ReservationStatus, values_callable=_enum_values),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    total_amount = Column(Numeric(10, 2), nullable=False)
    paid_amount = Column(Numeric(10, 2), default=0)
    notes = Column(Text)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    guest = relationship("Guest", back_populates="reservations")
