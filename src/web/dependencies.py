"""
FastAPI dependency injection for the admin services.

Services are built once by ``create_app`` and kept on ``app.state``;
tests swap them with ``app.dependency_overrides``.

Usage in endpoints:
    @router.post("/sys_role_layer_top")
    async def layer(service: RoleService = Depends(get_role_service)):
        ...
"""

from fastapi import Request

from rbac import RoleService


def get_role_service(request: Request) -> RoleService:
    return request.app.state.role_service
