"""
Permission service.

Loads the permission catalog and expands granted permission ids into their
layered (hierarchical) views: granting a permission grants its subtree.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.errors import store_session
from database.repositories import PermissionRepository

from .schemas import Permission, PermissionView
from .tree import build_subtree

logger = logging.getLogger(__name__)


def flatten_permissions(views: Iterable[PermissionView]) -> List[str]:
    """
    Collect permission strings from ``views`` and all their descendants.

    Depth-first, first occurrence wins; entries without a permission string
    are skipped.
    """
    seen: Dict[str, None] = {}

    def visit(view: PermissionView) -> None:
        if view.permission:
            seen.setdefault(view.permission, None)
        for child in view.childs or ():
            visit(child)

    for view in views:
        visit(view)
    return list(seen)


class PermissionService:
    """Permission catalog queries and hierarchy expansion."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def finds_all(self) -> List[Permission]:
        async with store_session(self._session_factory, "select all permissions") as session:
            rows = await PermissionRepository(session).select_all()
        return [Permission.model_validate(row) for row in rows]

    async def finds_all_map(self) -> Dict[str, PermissionView]:
        """All permissions keyed by id, as views without children."""
        return {
            p.id or "": PermissionView.from_permission(p)
            for p in await self.finds_all()
        }

    async def finds_layer(
        self,
        permission_ids: Sequence[str],
        all_permissions: Mapping[str, PermissionView],
    ) -> List[PermissionView]:
        """
        Expand ``permission_ids`` into views carrying their full subtrees.

        Args:
            permission_ids: Granted permission ids. Duplicates are ignored.
            all_permissions: Every permission keyed by id.

        Returns:
            One view per known id, in request order. Unknown ids are skipped.
        """
        views = []
        for permission_id in dict.fromkeys(permission_ids):
            permission = all_permissions.get(permission_id)
            if permission is None:
                logger.debug(f"Permission {permission_id} not in catalog, skipped")
                continue
            views.append(self.loop_find_childs(permission, all_permissions))
        return views

    def loop_find_childs(
        self,
        node: Permission,
        all_permissions: Mapping[str, PermissionView],
    ) -> PermissionView:
        return build_subtree(node, all_permissions, PermissionView.from_permission)
