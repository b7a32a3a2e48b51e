"""Repository implementations for the admin backend."""

from .role_repository import (
    PermissionRepository,
    RolePermissionRepository,
    RoleRepository,
    UserRoleRepository,
)

__all__ = [
    "PermissionRepository",
    "RolePermissionRepository",
    "RoleRepository",
    "UserRoleRepository",
]
