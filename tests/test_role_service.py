"""Tests for the role hierarchy service (cache-aside loading, tree views, mutations)."""

import logging

import pytest
from unittest.mock import AsyncMock, patch

from sqlalchemy.exc import SQLAlchemyError

from cache import CacheError, ICacheService
from database.repositories import RolePermissionRepository, RoleRepository
from rbac import (
    CacheRepopulationError,
    PermissionService,
    RoleAddDTO,
    RoleEditDTO,
    RolePageDTO,
    RoleService,
    StoreError,
)
from rbac.role_service import ROLE_CACHE_KEY, get_role_service
from tests.helpers.rbac_factories import (
    make_permission,
    make_role,
    make_role_permission,
    make_user_role,
)


@pytest.fixture
async def abc_roles(seed):
    """A is a root, B a child of A, C a child of B."""
    await seed(
        make_role("a", name="Admin"),
        make_role("b", parent_id="a", name="Manager"),
        make_role("c", parent_id="b", name="Clerk"),
    )


# =============================================================================
# TREE VIEWS
# =============================================================================

class TestFindsLayer:
    """Tests for the layered role forest."""

    @pytest.mark.asyncio
    async def test_chain_is_nested(self, role_service, abc_roles):
        """A -> B -> C comes back as one root with nested children."""
        layer = await role_service.finds_layer()

        assert [v.id for v in layer] == ["a"]
        a = layer[0]
        assert [v.id for v in a.childs] == ["b"]
        assert [v.id for v in a.childs[0].childs] == ["c"]
        assert a.childs[0].childs[0].childs is None

    @pytest.mark.asyncio
    async def test_leaf_has_no_childs_key(self, role_service, abc_roles):
        """Serialized leaves omit the childs field entirely."""
        layer = await role_service.finds_layer()
        dumped = layer[0].model_dump()

        c = dumped["childs"][0]["childs"][0]
        assert c["id"] == "c"
        assert "childs" not in c
        assert "childs" in dumped["childs"][0]

    @pytest.mark.asyncio
    async def test_only_roots_at_top_level(self, role_service, seed):
        await seed(
            make_role("r2"),
            make_role("r1"),
            make_role("x", parent_id="r1"),
            make_role("y", parent_id="r2"),
        )

        layer = await role_service.finds_layer()

        assert [v.id for v in layer] == ["r1", "r2"]
        assert all(v.parent_id is None for v in layer)

    @pytest.mark.asyncio
    async def test_children_sorted_by_id(self, role_service, seed):
        await seed(
            make_role("root"),
            make_role("k3", parent_id="root"),
            make_role("k1", parent_id="root"),
            make_role("k2", parent_id="root"),
        )

        layer = await role_service.finds_layer()

        assert [v.id for v in layer[0].childs] == ["k1", "k2", "k3"]

    @pytest.mark.asyncio
    async def test_empty_store_gives_empty_layer(self, role_service):
        assert await role_service.finds_layer() == []

    @pytest.mark.asyncio
    async def test_cyclic_rows_do_not_hang(self, role_service, seed, caplog):
        """x and y point at each other: neither is a root, and decorating x terminates."""
        await seed(
            make_role("r"),
            make_role("x", parent_id="y"),
            make_role("y", parent_id="x"),
        )

        layer = await role_service.finds_layer()
        assert [v.id for v in layer] == ["r"]

        all_roles = await role_service.finds_all_map()
        with caplog.at_level(logging.WARNING, logger="rbac.tree"):
            view = role_service.loop_find_childs(all_roles["x"], all_roles)

        assert [v.id for v in view.childs] == ["y"]
        assert view.childs[0].childs is None
        assert "Cyclic parent reference" in caplog.text


class TestLoopFindChilds:
    """Tests for subtree decoration."""

    @pytest.mark.asyncio
    async def test_child_views_match_independent_decoration(self, role_service, abc_roles):
        """Every child view equals decorating that child on its own."""
        all_roles = await role_service.finds_all_map()
        root = role_service.loop_find_childs(all_roles["a"], all_roles)

        def walk(view):
            for child in view.childs or ():
                assert child == role_service.loop_find_childs(all_roles[child.id], all_roles)
                walk(child)

        walk(root)

    @pytest.mark.asyncio
    async def test_does_not_mutate_map(self, role_service, abc_roles):
        all_roles = await role_service.finds_all_map()
        before = {k: v.model_copy() for k, v in all_roles.items()}

        role_service.loop_find_childs(all_roles["a"], all_roles)

        assert all_roles == before
        assert not hasattr(all_roles["a"], "childs")


# =============================================================================
# CACHE-ASIDE LOADING
# =============================================================================

class TestFindsAll:
    """Tests for the cache-aside role snapshot."""

    @pytest.mark.asyncio
    async def test_miss_loads_store_and_fills_cache(self, role_service, cache, abc_roles):
        roles = await role_service.finds_all()

        assert sorted(r.id for r in roles) == ["a", "b", "c"]
        cached = await cache.get_json(ROLE_CACHE_KEY)
        assert sorted(r["id"] for r in cached) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_hit_does_not_read_store(self, role_service, seed, abc_roles):
        """Rows written behind the service's back stay invisible until repopulation."""
        await role_service.finds_all()
        await seed(make_role("z"))

        assert "z" not in {r.id for r in await role_service.finds_all()}

        await role_service.update_cache()
        assert "z" in {r.id for r in await role_service.finds_all()}

    @pytest.mark.asyncio
    async def test_finds_all_map_keys_every_role(self, role_service, abc_roles):
        all_roles = await role_service.finds_all_map()

        assert len(all_roles) == 3
        assert set(all_roles) == {"a", "b", "c"}
        assert all(all_roles[k].id == k for k in all_roles)

    @pytest.mark.asyncio
    async def test_empty_cached_list_is_a_miss(self, role_service, cache, abc_roles):
        await cache.set_json(ROLE_CACHE_KEY, [])

        roles = await role_service.finds_all()

        assert len(roles) == 3
        assert len(await cache.get_json(ROLE_CACHE_KEY)) == 3

    @pytest.mark.asyncio
    async def test_undecodable_payload_is_rebuilt(self, role_service, cache, abc_roles):
        await cache.set_string(ROLE_CACHE_KEY, "{not json")

        roles = await role_service.finds_all()

        assert len(roles) == 3
        assert len(await cache.get_json(ROLE_CACHE_KEY)) == 3

    @pytest.mark.asyncio
    async def test_wrong_shape_payload_is_rebuilt(self, role_service, cache, abc_roles):
        await cache.set_json(ROLE_CACHE_KEY, [{"name": ["not", "a", "string"]}])

        roles = await role_service.finds_all()

        assert sorted(r.id for r in roles) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_cache_read_failure_falls_back_to_store(self, session_factory, abc_roles):
        broken = AsyncMock(spec=ICacheService)
        broken.get_json.side_effect = CacheError("connection refused")
        broken.set_json.side_effect = CacheError("connection refused")
        service = RoleService(session_factory, broken, PermissionService(session_factory))

        roles = await service.finds_all()

        assert sorted(r.id for r in roles) == ["a", "b", "c"]
        broken.set_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_write_failure_on_read_path_is_ignored(
        self, role_service, cache, abc_roles, caplog
    ):
        with patch.object(cache, "set_json", AsyncMock(side_effect=CacheError("read only"))):
            with caplog.at_level(logging.WARNING, logger="rbac.role_service"):
                roles = await role_service.finds_all()

        assert len(roles) == 3
        assert "Role cache write failed" in caplog.text
        assert await cache.get_json(ROLE_CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_store_failure_on_miss_propagates(self, role_service):
        with patch.object(
            RoleRepository, "select_all", AsyncMock(side_effect=SQLAlchemyError("no such table"))
        ):
            with pytest.raises(StoreError, match="no such table"):
                await role_service.finds_all()

    @pytest.mark.asyncio
    async def test_debug_logs_cache_hits(self, session_factory, cache, abc_roles, caplog):
        service = RoleService(
            session_factory, cache, PermissionService(session_factory), debug=True
        )
        await service.finds_all()

        with caplog.at_level(logging.INFO, logger="rbac.role_service"):
            await service.finds_all()

        assert f"[abs_admin] get from cache:{ROLE_CACHE_KEY}" in caplog.text

    @pytest.mark.asyncio
    async def test_custom_cache_key(self, session_factory, cache, abc_roles):
        service = get_role_service(session_factory, cache, cache_key="tenant1:roles")

        await service.finds_all()

        assert await cache.get_json(ROLE_CACHE_KEY) is None
        assert len(await cache.get_json("tenant1:roles")) == 3


class TestUpdateCache:
    """Tests for snapshot repopulation."""

    @pytest.mark.asyncio
    async def test_is_idempotent(self, role_service, cache, abc_roles):
        first = await role_service.update_cache()
        first_payload = await cache.get_json(ROLE_CACHE_KEY)

        second = await role_service.update_cache()
        second_payload = await cache.get_json(ROLE_CACHE_KEY)

        assert first == second
        assert first_payload == second_payload

    @pytest.mark.asyncio
    async def test_cache_write_failure_raises(self, role_service, cache, abc_roles):
        with patch.object(cache, "set_json", AsyncMock(side_effect=CacheError("read only"))):
            with pytest.raises(CacheError):
                await role_service.update_cache()


# =============================================================================
# LOOKUPS
# =============================================================================

class TestLookups:
    """Tests for id-based role and link lookups."""

    @pytest.mark.asyncio
    async def test_finds_by_ids(self, role_service, abc_roles):
        roles = await role_service.finds(["a", "c", "missing"])
        assert sorted(r.id for r in roles) == ["a", "c"]

    @pytest.mark.asyncio
    async def test_finds_empty_input(self, role_service):
        assert await role_service.finds([]) == []

    @pytest.mark.asyncio
    async def test_find_role_permissions(self, role_service, seed):
        await seed(
            make_role_permission("r1", "p1"),
            make_role_permission("r1", "p2"),
            make_role_permission("r2", "p3"),
        )

        links = await role_service.find_role_permissions(["r1"])

        assert sorted(link.permission_id for link in links) == ["p1", "p2"]
        assert await role_service.find_role_permissions([]) == []


@pytest.fixture
async def permission_catalog(seed):
    """
    sys
    ├── sys:role
    │   └── sys:role:add
    └── sys:user
    report
    """
    await seed(
        make_permission("p-sys", "sys"),
        make_permission("p-role", "sys:role", parent_id="p-sys"),
        make_permission("p-role-add", "sys:role:add", parent_id="p-role"),
        make_permission("p-user", "sys:user", parent_id="p-sys"),
        make_permission("p-report", "report"),
    )


class TestFindUserPermission:
    """Tests for effective permission resolution."""

    @pytest.mark.asyncio
    async def test_union_of_role_grants_with_subtrees(
        self, role_service, permission_service, seed, permission_catalog
    ):
        await seed(
            make_role("r1"),
            make_role("r2"),
            make_user_role("u1", "r1"),
            make_user_role("u1", "r2"),
            make_role_permission("r1", "p-role"),
            make_role_permission("r2", "p-report"),
            make_role_permission("r2", "p-role"),
        )
        catalog = await permission_service.finds_all_map()

        permissions = await role_service.find_user_permission("u1", catalog)

        assert sorted(permissions) == ["report", "sys:role", "sys:role:add"]
        assert len(permissions) == len(set(permissions))

    @pytest.mark.asyncio
    async def test_user_without_roles_short_circuits(self, session_factory, cache):
        permission_service = AsyncMock(spec=PermissionService)
        service = RoleService(session_factory, cache, permission_service)

        with patch.object(RolePermissionRepository, "select_in_role_ids") as select_links:
            result = await service.find_user_permission("nobody", {})

        assert result == []
        select_links.assert_not_called()
        permission_service.finds_layer.assert_not_called()

    @pytest.mark.asyncio
    async def test_roles_without_grants_short_circuit(self, session_factory, cache, seed):
        await seed(make_role("r3"), make_user_role("u2", "r3"))
        permission_service = AsyncMock(spec=PermissionService)
        service = RoleService(session_factory, cache, permission_service)

        assert await service.find_user_permission("u2", {}) == []
        permission_service.finds_layer.assert_not_called()

    @pytest.mark.asyncio
    async def test_grants_outside_catalog_are_skipped(
        self, role_service, permission_service, seed, permission_catalog
    ):
        await seed(
            make_user_role("u3", "r4"),
            make_role_permission("r4", "p-user"),
            make_role_permission("r4", "p-gone"),
        )
        catalog = await permission_service.finds_all_map()

        assert await role_service.find_user_permission("u3", catalog) == ["sys:user"]

    @pytest.mark.asyncio
    async def test_catalog_loaded_when_omitted(self, role_service, seed, permission_catalog):
        await seed(make_user_role("u4", "r5"), make_role_permission("r5", "p-role"))

        permissions = await role_service.find_user_permission("u4")

        assert sorted(permissions) == ["sys:role", "sys:role:add"]

    @pytest.mark.asyncio
    async def test_catalog_not_loaded_for_user_without_roles(self, session_factory, cache):
        permission_service = AsyncMock(spec=PermissionService)
        service = RoleService(session_factory, cache, permission_service)

        assert await service.find_user_permission("nobody") == []
        permission_service.finds_all_map.assert_not_called()

    @pytest.mark.asyncio
    async def test_catalog_not_loaded_when_roles_grant_nothing(self, session_factory, cache, seed):
        await seed(make_role("r6"), make_user_role("u5", "r6"))
        permission_service = AsyncMock(spec=PermissionService)
        service = RoleService(session_factory, cache, permission_service)

        assert await service.find_user_permission("u5") == []
        permission_service.finds_all_map.assert_not_called()


# =============================================================================
# PAGING
# =============================================================================

@pytest.fixture
async def paged_roles(seed):
    await seed(
        make_role("admin", name="admin", age_days=0),
        make_role("auditor", name="auditor", age_days=1),
        make_role("guest", name="guest", age_days=2),
        make_role("admin-ops", parent_id="admin", name="admin ops", age_days=3),
    )


class TestPage:
    """Tests for paged role listing."""

    @pytest.mark.asyncio
    async def test_first_page_newest_roots_with_subtrees(self, role_service, paged_roles):
        page = await role_service.page(RolePageDTO(page_no=1, page_size=2))

        assert page.total == 3
        assert page.pages == 2
        assert [r.id for r in page.records] == ["admin", "auditor"]
        assert [c.id for c in page.records[0].childs] == ["admin-ops"]
        assert page.records[1].childs is None

    @pytest.mark.asyncio
    async def test_last_page(self, role_service, paged_roles):
        page = await role_service.page(RolePageDTO(page_no=2, page_size=2))

        assert [r.id for r in page.records] == ["guest"]
        assert page.page_no == 2

    @pytest.mark.asyncio
    async def test_name_filter(self, role_service, paged_roles):
        page = await role_service.page(RolePageDTO(name="aud"))

        assert page.total == 1
        assert [r.id for r in page.records] == ["auditor"]

    @pytest.mark.asyncio
    async def test_name_filter_percent_is_literal(self, role_service, paged_roles):
        page = await role_service.page(RolePageDTO(name="%"))

        assert page.total == 0
        assert page.records == []

        await role_service.add(RoleAddDTO(name="100% access"))
        page = await role_service.page(RolePageDTO(name="%"))

        assert [r.name for r in page.records] == ["100% access"]

    @pytest.mark.asyncio
    async def test_name_filter_underscore_is_literal(self, role_service, seed):
        await seed(
            make_role("r1", name="a_b", age_days=0),
            make_role("r2", name="axb", age_days=1),
        )

        page = await role_service.page(RolePageDTO(name="a_b"))

        assert page.total == 1
        assert [r.id for r in page.records] == ["r1"]

    @pytest.mark.asyncio
    async def test_page_past_end_is_empty(self, role_service, paged_roles):
        page = await role_service.page(RolePageDTO(page_no=5, page_size=2))

        assert page.records == []
        assert page.total == 3


# =============================================================================
# MUTATIONS
# =============================================================================

class TestAdd:
    """Tests for role creation."""

    @pytest.mark.asyncio
    async def test_add_returns_rows_and_id(self, role_service, cache):
        rows, role_id = await role_service.add(RoleAddDTO(name="Support"))

        assert rows == 1
        assert len(role_id) == 32
        cached = await cache.get_json(ROLE_CACHE_KEY)
        assert [r["id"] for r in cached] == [role_id]

    @pytest.mark.asyncio
    async def test_added_child_appears_in_layer(self, role_service, abc_roles):
        _, role_id = await role_service.add(RoleAddDTO(name="Intern", parent_id="c"))

        layer = await role_service.finds_layer()
        c = layer[0].childs[0].childs[0]
        assert [v.id for v in c.childs] == [role_id]

    @pytest.mark.asyncio
    async def test_repopulation_failure_keeps_result(self, role_service, cache):
        with patch.object(cache, "set_json", AsyncMock(side_effect=CacheError("read only"))):
            with pytest.raises(CacheRepopulationError) as exc_info:
                await role_service.add(RoleAddDTO(name="Support"))

        rows, role_id = exc_info.value.result
        assert rows == 1
        assert isinstance(exc_info.value.__cause__, CacheError)
        assert [r.id for r in await role_service.finds([role_id])] == [role_id]

    @pytest.mark.asyncio
    async def test_store_read_failure_during_repopulation(self, role_service):
        with patch.object(
            RoleRepository, "select_all", AsyncMock(side_effect=SQLAlchemyError("locked"))
        ):
            with pytest.raises(CacheRepopulationError) as exc_info:
                await role_service.add(RoleAddDTO(name="Support"))

        assert exc_info.value.result[0] == 1
        assert isinstance(exc_info.value.__cause__, StoreError)

    @pytest.mark.asyncio
    async def test_store_failure_leaves_cache_untouched(self, role_service, cache, abc_roles):
        await role_service.finds_all()
        before = await cache.get_json(ROLE_CACHE_KEY)

        with patch.object(
            RoleRepository, "insert", AsyncMock(side_effect=SQLAlchemyError("disk full"))
        ):
            with pytest.raises(StoreError, match="disk full"):
                await role_service.add(RoleAddDTO(name="Support"))

        assert await cache.get_json(ROLE_CACHE_KEY) == before


class TestEdit:
    """Tests for role updates."""

    @pytest.mark.asyncio
    async def test_reparent_to_root(self, role_service, abc_roles):
        rows = await role_service.edit(RoleEditDTO(id="b", name="Lead", parent_id=None))

        assert rows == 1
        layer = await role_service.finds_layer()
        assert [v.id for v in layer] == ["a", "b"]
        assert layer[0].childs is None
        assert layer[1].name == "Lead"
        assert [v.id for v in layer[1].childs] == ["c"]

    @pytest.mark.asyncio
    async def test_unknown_id_affects_nothing(self, role_service, cache, abc_roles):
        rows = await role_service.edit(RoleEditDTO(id="missing", name="Ghost"))

        assert rows == 0
        assert len(await cache.get_json(ROLE_CACHE_KEY)) == 3

    @pytest.mark.asyncio
    async def test_repopulation_failure_keeps_rows(self, role_service, cache, abc_roles):
        with patch.object(cache, "set_json", AsyncMock(side_effect=CacheError("read only"))):
            with pytest.raises(CacheRepopulationError) as exc_info:
                await role_service.edit(RoleEditDTO(id="a", name="Owner"))

        assert exc_info.value.result == 1
        assert (await role_service.finds(["a"]))[0].name == "Owner"


class TestRemove:
    """Tests for role deletion."""

    @pytest.mark.asyncio
    async def test_removed_role_leaves_snapshot(self, role_service, abc_roles):
        await role_service.finds_all()

        rows = await role_service.remove("c")

        assert rows == 1
        assert "c" not in {r.id for r in await role_service.finds_all()}

    @pytest.mark.asyncio
    async def test_removes_permission_links(self, role_service, seed, abc_roles):
        await seed(make_role_permission("c", "p1"), make_role_permission("a", "p1"))

        await role_service.remove("c")

        assert await role_service.find_role_permissions(["c"]) == []
        assert len(await role_service.find_role_permissions(["a"])) == 1

    @pytest.mark.asyncio
    async def test_orphans_drop_out_of_layer(self, role_service, abc_roles):
        await role_service.remove("a")

        assert await role_service.finds_layer() == []
        assert sorted((await role_service.finds_all_map())) == ["b", "c"]

    @pytest.mark.asyncio
    async def test_unknown_id(self, role_service, abc_roles):
        assert await role_service.remove("missing") == 0
