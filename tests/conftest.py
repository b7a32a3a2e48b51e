"""
Pytest configuration for the admin backend tests.

Every test that touches the store gets its own SQLite file under
``tmp_path``; the cache is the in-process backend.
"""

import os

import pytest

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_CACHE_BACKEND", "memory")

from cache import MemoryCacheService
from config.database import DatabaseSettings
from database.async_engine import create_engine, get_session_factory, init_database
from rbac import PermissionService, RoleService


# =============================================================================
# STORE
# =============================================================================

@pytest.fixture
def db_settings(tmp_path):
    return DatabaseSettings(sqlite_path=tmp_path / "abs_admin_test.db")


@pytest.fixture
async def engine(db_settings):
    engine = create_engine(db_settings)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def seed(session_factory):
    """
    Insert ORM rows in one committed transaction.

    Usage:
        async def test_x(seed):
            await seed(make_role("a"), make_role("b", parent_id="a"))
    """
    async def _seed(*rows):
        async with session_factory.begin() as session:
            session.add_all(rows)

    return _seed


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def cache():
    return MemoryCacheService()


@pytest.fixture
def permission_service(session_factory):
    return PermissionService(session_factory)


@pytest.fixture
def role_service(session_factory, cache, permission_service):
    return RoleService(session_factory, cache, permission_service)
