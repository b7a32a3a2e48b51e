"""
Role administration API routes.

Endpoints:
- POST /admin/sys_role_page       : paged root roles with subtrees
- POST /admin/sys_role_layer_top  : full role forest
- POST /admin/sys_role_add        : create a role
- POST /admin/sys_role_update     : replace a role's editable fields
- POST /admin/sys_role_delete     : delete a role
- GET  /admin/sys_user_permission/{user_id} : effective permission strings
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from rbac import (
    Page,
    RoleAddDTO,
    RoleEditDTO,
    RoleIdDTO,
    RolePageDTO,
    RoleService,
    RoleView,
)

from .dependencies import get_role_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Roles"])


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class RowsAffectedResponse(BaseModel):
    rows_affected: int


class RoleAddResponse(BaseModel):
    rows_affected: int
    id: str


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/sys_role_page", response_model=Page[RoleView])
async def role_page(
    arg: RolePageDTO,
    service: RoleService = Depends(get_role_service),
):
    return await service.page(arg)


@router.post("/sys_role_layer_top", response_model=List[RoleView])
async def role_layer_top(service: RoleService = Depends(get_role_service)):
    return await service.finds_layer()


@router.post("/sys_role_add", response_model=RoleAddResponse)
async def role_add(
    arg: RoleAddDTO,
    service: RoleService = Depends(get_role_service),
):
    rows, role_id = await service.add(arg)
    return RoleAddResponse(rows_affected=rows, id=role_id)


@router.post("/sys_role_update", response_model=RowsAffectedResponse)
async def role_update(
    arg: RoleEditDTO,
    service: RoleService = Depends(get_role_service),
):
    return RowsAffectedResponse(rows_affected=await service.edit(arg))


@router.post("/sys_role_delete", response_model=RowsAffectedResponse)
async def role_delete(
    arg: RoleIdDTO,
    service: RoleService = Depends(get_role_service),
):
    return RowsAffectedResponse(rows_affected=await service.remove(arg.id))


@router.get("/sys_user_permission/{user_id}", response_model=List[str])
async def user_permission(
    user_id: str,
    service: RoleService = Depends(get_role_service),
):
    return await service.find_user_permission(user_id)
