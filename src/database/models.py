"""
SQLAlchemy ORM models for the admin RBAC tables.

Tables:
- sys_role: role hierarchy (parent_id NULL marks a root role)
- sys_permission: permission catalog, itself hierarchical
- sys_role_permission: role-to-permission links
- sys_user_role: user-to-role links

Identifiers are 32-char uuid hex strings generated by the service layer.
Parent references carry no foreign key: an orphaned child simply stops
appearing in the layered view.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SysRole(Base):
    """Role definition."""
    __tablename__ = "sys_role"

    id = Column(String(32), primary_key=True)
    name = Column(String(100), nullable=False, index=True)
    parent_id = Column(String(32), nullable=True, index=True)
    create_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<SysRole(id={self.id}, name={self.name}, parent={self.parent_id})>"


class SysPermission(Base):
    """Permission catalog entry."""
    __tablename__ = "sys_permission"

    id = Column(String(32), primary_key=True)
    parent_id = Column(String(32), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    permission = Column(String(200), nullable=False, unique=True)
    path = Column(String(200), nullable=True)
    create_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<SysPermission(id={self.id}, permission={self.permission})>"


class SysRolePermission(Base):
    """Role-to-permission link."""
    __tablename__ = "sys_role_permission"

    id = Column(String(32), primary_key=True)
    role_id = Column(String(32), nullable=False)
    permission_id = Column(String(32), nullable=False)
    create_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_role_permission_role", "role_id"),
        Index("ix_role_permission_permission", "permission_id"),
    )

    def __repr__(self):
        return f"<SysRolePermission(role={self.role_id}, permission={self.permission_id})>"


class SysUserRole(Base):
    """User-to-role link."""
    __tablename__ = "sys_user_role"

    id = Column(String(32), primary_key=True)
    user_id = Column(String(32), nullable=False)
    role_id = Column(String(32), nullable=False)
    create_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_user_role_user", "user_id"),
        Index("ix_user_role_role", "role_id"),
    )

    def __repr__(self):
        return f"<SysUserRole(user={self.user_id}, role={self.role_id})>"
