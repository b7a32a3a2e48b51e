"""Async repositories for the RBAC tables.

Each repository wraps one table and runs inside the session it was given;
transaction boundaries belong to the caller.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import SysPermission, SysRole, SysRolePermission, SysUserRole

logger = logging.getLogger(__name__)


class RoleRepository:
    """Queries and writes against ``sys_role``."""

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with a session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def select_page_by_name(
        self,
        name: Optional[str],
        page_no: int,
        page_size: int,
    ) -> Tuple[List[SysRole], int]:
        """
        Select one page of root roles whose name contains ``name``.

        Args:
            name: Name fragment; empty or None matches every role.
            page_no: 1-based page number.
            page_size: Rows per page.

        Returns:
            Tuple of (rows on the page, total matching rows).
        """
        conditions = [SysRole.parent_id.is_(None)]
        if name:
            conditions.append(SysRole.name.contains(name, autoescape=True))

        count_stmt = select(func.count()).select_from(SysRole).where(*conditions)
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = (
            select(SysRole)
            .where(*conditions)
            .order_by(SysRole.create_date.desc(), SysRole.id)
            .offset((page_no - 1) * page_size)
            .limit(page_size)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total

    async def select_all(self) -> List[SysRole]:
        result = await self._session.execute(select(SysRole))
        return list(result.scalars().all())

    async def select_in_ids(self, ids: Sequence[str]) -> List[SysRole]:
        if not ids:
            return []
        result = await self._session.execute(select(SysRole).where(SysRole.id.in_(ids)))
        return list(result.scalars().all())

    async def insert(self, role: SysRole) -> int:
        self._session.add(role)
        await self._session.flush()
        logger.debug(f"Inserted role: {role.id}")
        return 1

    async def update_by_id(self, role_id: str, name: str, parent_id: Optional[str]) -> int:
        """Replace the editable columns of one role. Returns affected rows."""
        stmt = (
            update(SysRole)
            .where(SysRole.id == role_id)
            .values(name=name, parent_id=parent_id)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete_by_id(self, role_id: str) -> int:
        result = await self._session.execute(delete(SysRole).where(SysRole.id == role_id))
        return result.rowcount


class RolePermissionRepository:
    """Queries and writes against ``sys_role_permission``."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def select_in_role_ids(self, role_ids: Sequence[str]) -> List[SysRolePermission]:
        if not role_ids:
            return []
        stmt = select(SysRolePermission).where(SysRolePermission.role_id.in_(role_ids))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def delete_by_role_id(self, role_id: str) -> int:
        stmt = delete(SysRolePermission).where(SysRolePermission.role_id == role_id)
        result = await self._session.execute(stmt)
        return result.rowcount


class UserRoleRepository:
    """Queries against ``sys_user_role``."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def select_by_user_id(self, user_id: str) -> List[SysUserRole]:
        stmt = select(SysUserRole).where(SysUserRole.user_id == user_id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class PermissionRepository:
    """Queries against ``sys_permission``."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def select_all(self) -> List[SysPermission]:
        result = await self._session.execute(select(SysPermission))
        return list(result.scalars().all())

    async def select_in_ids(self, ids: Sequence[str]) -> List[SysPermission]:
        if not ids:
            return []
        stmt = select(SysPermission).where(SysPermission.id.in_(ids))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
