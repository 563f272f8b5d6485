"""
Global role management API routes.

Organization-scoped roles are managed under ``/organizations``.
"""
from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status

from app.features.users.models import User
from app.features.permissions.constants import PermissionName
from app.features.permissions.dependencies import (
    get_audit_log_service,
    require_permission,
    schedule_audit_log,
)
from app.features.permissions.models import PermissionScope
from app.features.permissions.service import AuditLogService
from app.features.roles.dependencies import get_role_service
from app.features.roles.schemas import RoleCreate, RoleUpdate, RoleResponse
from app.features.roles.service import RoleService


router = APIRouter()

manage_global_roles = require_permission(PermissionName.MANAGE_USER_GLOBAL_ROLES)


@router.get("/global", response_model=List[RoleResponse])
async def list_global_roles(
    current_user: User = Depends(manage_global_roles),
    roles: RoleService = Depends(get_role_service),
):
    """List all global roles."""
    return await roles.list_global_roles()


@router.post("/global", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_global_role(
    role_data: RoleCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(manage_global_roles),
    roles: RoleService = Depends(get_role_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Create a global role from GLOBAL-scoped permissions."""
    role = await roles.create_role(
        role_data.name,
        PermissionScope.GLOBAL,
        permission_names=role_data.permissions,
        is_default=role_data.is_default,
    )
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="create",
        entity_type="role",
        entity_id=role.id,
        details=role_data.model_dump(),
    )
    return role


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    current_user: User = Depends(manage_global_roles),
    roles: RoleService = Depends(get_role_service),
):
    """Get a role with its permissions."""
    return await roles.get_role(role_id)


@router.get("/{role_id}/permissions", response_model=List[str])
async def get_role_permissions(
    role_id: str,
    current_user: User = Depends(manage_global_roles),
    roles: RoleService = Depends(get_role_service),
):
    """List the permission names granted by a role."""
    return await roles.get_role_permissions(role_id)


@router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_data: RoleUpdate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(manage_global_roles),
    roles: RoleService = Depends(get_role_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Replace a role's permissions and optionally rename it."""
    role = await roles.update_role_permissions(role_id, role_data.permissions, name=role_data.name)
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="update",
        entity_type="role",
        entity_id=role.id,
        organization_id=role.scope_id if role.scope is PermissionScope.ORGANIZATION else None,
        details=role_data.model_dump(exclude_none=True),
    )
    return role


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(manage_global_roles),
    roles: RoleService = Depends(get_role_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Delete a non-default role and all of its assignments."""
    await roles.delete_role(role_id)
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="delete",
        entity_type="role",
        entity_id=role_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
