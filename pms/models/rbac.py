"""
自定义角色 ORM 模型 - 自定义角色、角色-模块权限、用户-角色分配
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from pms.database import Base


class CustomRole(Base):
    """自定义角色表"""
    __tablename__ = "custom_roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(500), default="")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    permissions = relationship(
        "RolePermission",
        back_populates="role",
        lazy="selectin",
        order_by="RolePermission.module",
    )
    assignments = relationship("UserCustomRole", back_populates="role")


class RolePermission(Base):
    """角色-模块权限表

    permissions 存储 {"read": bool, "write": bool, "delete": bool}
    """
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "module", name="uq_role_permissions_role_module"),
    )

    id = Column(Integer, primary_key=True, index=True)
    role_id = Column(Integer, ForeignKey("custom_roles.id", ondelete="CASCADE"), nullable=False, index=True)
    module = Column(String(50), nullable=False)
    permissions = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    role = relationship("CustomRole", back_populates="permissions")


class UserCustomRole(Base):
    """用户-自定义角色分配表"""
    __tablename__ = "user_custom_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_custom_roles_user_role"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("custom_roles.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="custom_roles")
    role = relationship("CustomRole", back_populates="assignments")
