"""
Role-Based Access Control (RBAC) core.

Role hierarchy with cache-aside loading, role/permission links and
effective permission resolution.

Usage:
    from rbac import RoleService, PermissionService

    permission_service = PermissionService(session_factory)
    service = RoleService(session_factory, cache, permission_service)
    forest = await service.finds_layer()
    catalog = await permission_service.finds_all_map()
    granted = await service.find_user_permission(user_id, catalog)
"""

from .errors import CacheError, CacheRepopulationError, RoleServiceError, StoreError
from .permission_service import PermissionService, flatten_permissions
from .role_service import ROLE_CACHE_KEY, RoleService, get_role_service
from .schemas import (
    Page,
    Permission,
    PermissionView,
    Role,
    RoleAddDTO,
    RoleEditDTO,
    RoleIdDTO,
    RolePageDTO,
    RolePermissionLink,
    RoleView,
    UserRoleLink,
)

__all__ = [
    # Errors
    "CacheError",
    "CacheRepopulationError",
    "RoleServiceError",
    "StoreError",
    # Services
    "PermissionService",
    "flatten_permissions",
    "ROLE_CACHE_KEY",
    "RoleService",
    "get_role_service",
    # Schemas
    "Page",
    "Permission",
    "PermissionView",
    "Role",
    "RoleAddDTO",
    "RoleEditDTO",
    "RoleIdDTO",
    "RolePageDTO",
    "RolePermissionLink",
    "RoleView",
    "UserRoleLink",
]
