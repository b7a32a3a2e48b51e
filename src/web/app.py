"""
FastAPI application for the admin backend.

Routes:
- /admin/* : role administration (see web.role_routes)
- /health  : database and cache liveness

Run with:
    uvicorn web.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from cache import CacheError, ICacheService, get_cache_service
from config import Settings, configure_logging, get_settings
from database.async_engine import create_engine, get_session_factory, init_database
from rbac import PermissionService, RoleService

from .error_handlers import register_exception_handlers
from .health_checks import router as health_router
from .role_routes import router as role_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
    cache: Optional[ICacheService] = None,
) -> FastAPI:
    """
    Build the application and its services.

    Args:
        settings: Application settings. Loaded from environment if omitted.
        engine: Database engine. Built from settings if omitted.
        cache: Cache backend. Built from settings if omitted.
    """
    settings = settings or get_settings()
    engine = engine or create_engine(settings.database)
    cache = cache or get_cache_service(settings)

    session_factory = get_session_factory(engine)
    permission_service = PermissionService(session_factory)
    role_service = RoleService(
        session_factory,
        cache,
        permission_service,
        cache_key=settings.role_cache_key,
        debug=settings.debug,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Deployed environments always log JSON for the log shipper
        configure_logging(settings.log_level, json_output=settings.log_json or settings.is_production)
        logger.info(f"Starting {settings.name} {settings.version} ({settings.environment})")
        await init_database(engine)
        try:
            await cache.connect()
        except CacheError as e:
            logger.warning(f"Cache unavailable at startup, roles are served from the store: {e}")
        try:
            yield
        finally:
            await cache.close()
            await engine.dispose()
            logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.name,
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.cache = cache
    app.state.role_service = role_service

    register_exception_handlers(app)
    app.include_router(role_router)
    app.include_router(health_router)

    return app
