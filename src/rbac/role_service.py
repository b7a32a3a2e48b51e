"""
Role hierarchy service.

Every role read goes through ``finds_all``, a cache-aside loader over a
single snapshot of the ``sys_role`` table. The snapshot lives in the cache
store under one key and is rewritten after every role mutation.

Read path:
    cache hit  -> snapshot
    cache miss -> select all roles, best-effort cache write, return rows

A miss covers an absent key, an empty stored list, a payload that does not
decode, and a cache transport failure. Reads never fail because of the
cache.

Write path:
    store write (committed) -> update_cache()

If refreshing the snapshot fails after a committed store write, the
mutation raises CacheRepopulationError carrying the write's result.

Concurrent misses may each rebuild and rewrite the snapshot. The rewrite
is idempotent and always derived from the store, so no lock is taken.
Decoration of paged or layered results costs time proportional to the total
role count, regardless of page size.
"""

import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cache.base import CacheError, CacheLookup, ICacheService
from database.errors import StoreError, store_session
from database.models import SysRole
from database.repositories import (
    RolePermissionRepository,
    RoleRepository,
    UserRoleRepository,
)

from .errors import CacheRepopulationError
from .permission_service import PermissionService, flatten_permissions
from .schemas import (
    Page,
    PermissionView,
    Role,
    RoleAddDTO,
    RoleEditDTO,
    RolePageDTO,
    RolePermissionLink,
    RoleView,
    UserRoleLink,
)
from .tree import build_subtree, root_nodes

logger = logging.getLogger(__name__)

ROLE_CACHE_KEY = "sys_role:all"

_ROLE_LIST = TypeAdapter(List[Role])


def _distinct(values) -> List[str]:
    return list(dict.fromkeys(values))


class RoleService:
    """
    Role hierarchy engine.

    Collaborators are injected so the service can run against any store
    session factory and cache backend.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: ICacheService,
        permission_service: PermissionService,
        cache_key: str = ROLE_CACHE_KEY,
        debug: bool = False,
    ):
        self._session_factory = session_factory
        self._cache = cache
        self._permission_service = permission_service
        self.cache_key = cache_key
        self.debug = debug

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    async def page(self, arg: RolePageDTO) -> Page[RoleView]:
        """Page of root roles matching ``arg.name``, each with its full subtree."""
        async with store_session(self._session_factory, "select role page") as session:
            rows, total = await RoleRepository(session).select_page_by_name(
                arg.name, arg.page_no, arg.page_size
            )
        all_roles = await self.finds_all_map()
        records = [
            self.loop_find_childs(Role.model_validate(row), all_roles)
            for row in rows
        ]
        return Page[RoleView](
            records=records,
            total=total,
            page_no=arg.page_no,
            page_size=arg.page_size,
        )

    async def finds_layer(self) -> List[RoleView]:
        """The whole role forest: one view per root role."""
        all_roles = await self.finds_all_map()
        return [self.loop_find_childs(role, all_roles) for role in root_nodes(all_roles)]

    def loop_find_childs(self, node: Role, roles: Mapping[str, Role]) -> RoleView:
        """Return a view of ``node`` with every descendant found in ``roles``."""
        return build_subtree(node, roles, RoleView.from_role)

    # -------------------------------------------------------------------------
    # Cache-aside loading
    # -------------------------------------------------------------------------

    async def finds_all(self) -> List[Role]:
        lookup = await self._read_cached_roles()
        if lookup.is_miss:
            logger.debug(
                f"Role cache {lookup.status.value} on {self.cache_key}, rebuilding from store"
            )
            roles = await self._select_all_roles()
            try:
                await self._write_cache(roles)
            except CacheError as e:
                logger.warning(f"Role cache write failed on read path: {e}")
            return roles

        if self.debug:
            logger.info(f"[abs_admin] get from cache:{self.cache_key}")
        return lookup.value

    async def update_cache(self) -> List[Role]:
        """
        Reload every role from the store and overwrite the cached snapshot.

        Raises:
            StoreError: If the roles cannot be read.
            CacheError: If the snapshot cannot be written.
        """
        roles = await self._select_all_roles()
        await self._write_cache(roles)
        logger.info(f"Role cache repopulated with {len(roles)} roles")
        return roles

    async def finds_all_map(self) -> Dict[str, Role]:
        return {role.id or "": role for role in await self.finds_all()}

    async def _read_cached_roles(self) -> CacheLookup[List[Role]]:
        try:
            payload = await self._cache.get_json(self.cache_key)
        except CacheError as e:
            return CacheLookup.failed(e)

        if payload is None:
            return CacheLookup.miss()

        try:
            roles = _ROLE_LIST.validate_python(payload)
        except ValidationError as e:
            return CacheLookup.failed(e)

        if not roles:
            return CacheLookup.empty()
        return CacheLookup.hit(roles)

    async def _write_cache(self, roles: List[Role]) -> None:
        await self._cache.set_json(self.cache_key, _ROLE_LIST.dump_python(roles, mode="json"))

    async def _select_all_roles(self) -> List[Role]:
        async with store_session(self._session_factory, "select all roles") as session:
            rows = await RoleRepository(session).select_all()
        return [Role.model_validate(row) for row in rows]

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def finds(self, ids: Sequence[str]) -> List[Role]:
        if not ids:
            return []
        async with store_session(self._session_factory, "select roles by id") as session:
            rows = await RoleRepository(session).select_in_ids(ids)
        return [Role.model_validate(row) for row in rows]

    async def find_role_permissions(self, role_ids: Sequence[str]) -> List[RolePermissionLink]:
        if not role_ids:
            return []
        async with store_session(self._session_factory, "select role permissions") as session:
            rows = await RolePermissionRepository(session).select_in_role_ids(role_ids)
        return [RolePermissionLink.model_validate(row) for row in rows]

    async def find_user_roles(self, user_id: str) -> List[UserRoleLink]:
        async with store_session(self._session_factory, "select user roles") as session:
            rows = await UserRoleRepository(session).select_by_user_id(user_id)
        return [UserRoleLink.model_validate(row) for row in rows]

    async def find_user_permission(
        self,
        user_id: str,
        all_permissions: Optional[Mapping[str, PermissionView]] = None,
    ) -> List[str]:
        """
        Effective permission strings of a user.

        Roles of the user -> their permission links -> layered permission
        views -> flattened permission strings. Stops early with an empty
        list when the user has no roles or the roles grant nothing. The
        permission catalog is loaded only past those checks when the caller
        does not pass one.
        """
        role_ids = _distinct(link.role_id for link in await self.find_user_roles(user_id))
        if not role_ids:
            return []

        links = await self.find_role_permissions(role_ids)
        permission_ids = _distinct(link.permission_id for link in links)
        if not permission_ids:
            return []

        if all_permissions is None:
            all_permissions = await self._permission_service.finds_all_map()
        views = await self._permission_service.finds_layer(permission_ids, all_permissions)
        return flatten_permissions(views)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add(self, arg: RoleAddDTO) -> Tuple[int, str]:
        """Insert a role. Returns (affected rows, new role id)."""
        role_id = uuid4().hex
        role = SysRole(
            id=role_id,
            name=arg.name,
            parent_id=arg.parent_id,
            create_date=datetime.utcnow(),
        )
        async with store_session(self._session_factory, "insert role", write=True) as session:
            rows = await RoleRepository(session).insert(role)

        result = (rows, role_id)
        logger.info(f"Role added: {role_id} (rows={rows})")
        await self._repopulate_after("add", result)
        return result

    async def edit(self, arg: RoleEditDTO) -> int:
        """Replace a role's editable fields. Returns affected rows (0 if unknown)."""
        async with store_session(self._session_factory, "update role", write=True) as session:
            rows = await RoleRepository(session).update_by_id(arg.id, arg.name, arg.parent_id)

        logger.info(f"Role edited: {arg.id} (rows={rows})")
        await self._repopulate_after("edit", rows)
        return rows

    async def remove(self, role_id: str) -> int:
        """Delete a role and its permission links. Returns affected role rows."""
        async with store_session(self._session_factory, "delete role", write=True) as session:
            rows = await RoleRepository(session).delete_by_id(role_id)
            await RolePermissionRepository(session).delete_by_role_id(role_id)

        logger.info(f"Role removed: {role_id} (rows={rows})")
        await self._repopulate_after("remove", rows)
        return rows

    async def _repopulate_after(self, operation: str, result) -> None:
        try:
            await self.update_cache()
        except (CacheError, StoreError) as e:
            logger.error(f"Role {operation} committed but cache repopulation failed: {e}")
            raise CacheRepopulationError(
                f"role {operation} committed but cache repopulation failed: {e}",
                result=result,
            ) from e


def get_role_service(
    session_factory: async_sessionmaker[AsyncSession],
    cache: ICacheService,
    permission_service: Optional[PermissionService] = None,
    cache_key: str = ROLE_CACHE_KEY,
    debug: bool = False,
) -> RoleService:
    """Get role service instance."""
    return RoleService(
        session_factory,
        cache,
        permission_service or PermissionService(session_factory),
        cache_key=cache_key,
        debug=debug,
    )
