"""
Database layer for the admin backend.

This module provides:
- SQLAlchemy ORM models for roles, permissions and their links
- Async database engine and session factory
- Repositories implementing the persistent store primitives
"""

from .async_engine import (
    check_database_connection,
    close_database,
    create_engine,
    get_async_engine,
    get_async_session_factory,
    get_session_factory,
    init_database,
)
from .errors import StoreError, store_session
from .models import Base, SysPermission, SysRole, SysRolePermission, SysUserRole

__all__ = [
    "Base",
    "SysPermission",
    "SysRole",
    "SysRolePermission",
    "SysUserRole",
    "StoreError",
    "store_session",
    "check_database_connection",
    "close_database",
    "create_engine",
    "get_async_engine",
    "get_async_session_factory",
    "get_session_factory",
    "init_database",
]
