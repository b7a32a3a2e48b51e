"""
Pydantic schemas for roles, permissions and their views.

Tree views leave ``childs`` out of serialized output when a node has no
children, which keeps layered payloads compact.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    computed_field,
    model_serializer,
)

T = TypeVar("T")


def _drop_missing_childs(data: Dict[str, Any], childs: Optional[list]) -> Dict[str, Any]:
    if childs is None:
        data.pop("childs", None)
    return data


# =============================================================================
# ROLES
# =============================================================================

class Role(BaseModel):
    """A persisted role row."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    name: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, description="None marks a root role")
    create_date: Optional[datetime] = None


class RoleView(Role):
    """A role decorated with its descendant subtree."""
    childs: Optional[List[RoleView]] = None

    @model_serializer(mode="wrap")
    def _serialize(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        return _drop_missing_childs(handler(self), self.childs)

    @classmethod
    def from_role(cls, role: Role, childs: Optional[List[RoleView]] = None) -> RoleView:
        return cls(
            id=role.id,
            name=role.name,
            parent_id=role.parent_id,
            create_date=role.create_date,
            childs=childs or None,
        )


class RoleAddDTO(BaseModel):
    """Request to create a role."""
    name: str = Field(..., min_length=1, max_length=100)
    parent_id: Optional[str] = None


class RoleEditDTO(BaseModel):
    """Full replacement of a role's editable fields."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    parent_id: Optional[str] = None


class RolePageDTO(BaseModel):
    """Paged role listing filtered by name fragment."""
    page_no: int = Field(default=1, ge=1, description="1-based page number")
    page_size: int = Field(default=10, ge=1, le=500, description="Rows per page")
    name: Optional[str] = Field(default=None, description="Name fragment to match")


class RoleIdDTO(BaseModel):
    id: str = Field(..., min_length=1)


class Page(BaseModel, Generic[T]):
    """One page of results with store-computed metadata."""
    records: List[T] = Field(default_factory=list)
    total: int = 0
    page_no: int = 1
    page_size: int = 10

    @computed_field
    @property
    def pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


# =============================================================================
# LINKS
# =============================================================================

class RolePermissionLink(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role_id: str
    permission_id: str


class UserRoleLink(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    role_id: str


# =============================================================================
# PERMISSIONS
# =============================================================================

class Permission(BaseModel):
    """A persisted permission row."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    parent_id: Optional[str] = None
    name: Optional[str] = None
    permission: Optional[str] = Field(default=None, description="Permission string, e.g. 'role:add'")
    path: Optional[str] = None
    create_date: Optional[datetime] = None


class PermissionView(Permission):
    """A permission decorated with its descendant subtree."""
    childs: Optional[List[PermissionView]] = None

    @model_serializer(mode="wrap")
    def _serialize(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        return _drop_missing_childs(handler(self), self.childs)

    @classmethod
    def from_permission(
        cls,
        permission: Permission,
        childs: Optional[List[PermissionView]] = None,
    ) -> PermissionView:
        return cls(
            id=permission.id,
            parent_id=permission.parent_id,
            name=permission.name,
            permission=permission.permission,
            path=permission.path,
            create_date=permission.create_date,
            childs=childs or None,
        )
