"""
Organization feature routes, including organization-scoped role management.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status

from app.core import config
from app.core.rate_limit import limiter
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.organizations.dependencies import get_organization_service
from app.features.organizations.schemas import (
    AssignOwnerRequest,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
)
from app.features.organizations.service import OrganizationService
from app.features.permissions.constants import PermissionName
from app.features.permissions.dependencies import (
    get_audit_log_service,
    require_permission,
    schedule_audit_log,
)
from app.features.permissions.models import PermissionScope
from app.features.permissions.service import AuditLogService
from app.features.roles.dependencies import get_role_assignment_service, get_role_service
from app.features.roles.schemas import (
    AssignRoleRequest,
    AssignmentResponse,
    RoleCreate,
    RoleListResponse,
    RoleResponse,
    RoleUpdate,
)
from app.features.roles.service import RoleAssignmentService, RoleService


router = APIRouter(tags=["organizations"])


# ============================================================================
# Organization Routes
# ============================================================================

@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.CREATE_ORGANIZATION)),
    organizations: OrganizationService = Depends(get_organization_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Create a new organization without an owner."""
    organization = await organizations.create_organization(org_data.name)
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="create",
        entity_type="organization",
        entity_id=organization.id,
        organization_id=organization.id,
        details=org_data.model_dump(),
    )
    return organization


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    organizations: OrganizationService = Depends(get_organization_service),
):
    """Get a specific organization by ID."""
    return await organizations.get_organization(organization_id)


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: str,
    org_data: OrganizationUpdate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.UPDATE_ORGANIZATION)),
    organizations: OrganizationService = Depends(get_organization_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Rename an organization or change its active flag."""
    organization = await organizations.update_organization(
        organization_id,
        name=org_data.name,
        is_active=org_data.is_active,
    )
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="update",
        entity_type="organization",
        entity_id=organization_id,
        organization_id=organization_id,
        details=org_data.model_dump(exclude_none=True),
    )
    return organization


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.DELETE_OWN_ORGANIZATION)),
    organizations: OrganizationService = Depends(get_organization_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """
    Delete an organization.
    
    Its roles, their assignments and its events (with their roles and
    assignments) are removed in the same transaction.
    """
    await organizations.delete_organization(organization_id)
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="delete",
        entity_type="organization",
        entity_id=organization_id,
        organization_id=organization_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{organization_id}/assign-owner", response_model=OrganizationResponse)
@limiter.limit(config.RATE_LIMIT)
async def assign_owner(
    organization_id: str,
    owner_data: AssignOwnerRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.ASSIGN_ORGANIZATION_OWNER)),
    organizations: OrganizationService = Depends(get_organization_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """
    Nominate the owner of an organization.
    
    Creates the organization's "Organization Owner" role if needed and
    assigns it to the user. Fails with 409 once an owner is set.
    """
    organization = await organizations.assign_owner(organization_id, owner_data.user_id)
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="assign_owner",
        entity_type="organization",
        entity_id=organization_id,
        organization_id=organization_id,
        details={"owner_id": owner_data.user_id},
    )
    return organization


# ============================================================================
# Organization Role Routes
# ============================================================================

@router.get("/{organization_id}/roles", response_model=RoleListResponse)
async def list_organization_roles(
    organization_id: str,
    current_user: User = Depends(require_permission(PermissionName.VIEW_ROLES)),
    roles: RoleService = Depends(get_role_service),
):
    """List the roles defined for an organization."""
    found = await roles.get_roles_by_scope_instance(PermissionScope.ORGANIZATION, organization_id)
    return RoleListResponse(roles=[RoleResponse.model_validate(role) for role in found])


@router.post("/{organization_id}/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_organization_role(
    organization_id: str,
    role_data: RoleCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.MANAGE_ORGANIZATION_ROLES)),
    roles: RoleService = Depends(get_role_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Create a role for an organization from ORGANIZATION-scoped permissions."""
    # Default roles are system managed; callers cannot mint them
    role = await roles.create_role(
        role_data.name,
        PermissionScope.ORGANIZATION,
        organization_id,
        permission_names=role_data.permissions,
    )
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="create",
        entity_type="role",
        entity_id=role.id,
        organization_id=organization_id,
        details=role_data.model_dump(exclude={"is_default"}),
    )
    return role


@router.put("/{organization_id}/roles/{role_id}", response_model=RoleResponse)
async def update_organization_role(
    organization_id: str,
    role_id: str,
    role_data: RoleUpdate,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.MANAGE_ORGANIZATION_ROLES)),
    roles: RoleService = Depends(get_role_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Replace the permissions of one of the organization's roles."""
    role = await roles.update_role_permissions(
        role_id,
        role_data.permissions,
        name=role_data.name,
        within_scope_id=organization_id,
    )
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="update",
        entity_type="role",
        entity_id=role.id,
        organization_id=organization_id,
        details=role_data.model_dump(exclude_none=True),
    )
    return role


# ============================================================================
# Organization Assignment Routes
# ============================================================================

@router.post(
    "/{organization_id}/users/{user_id}/assignments",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(config.RATE_LIMIT)
async def assign_organization_role(
    organization_id: str,
    user_id: str,
    assignment_data: AssignRoleRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.ASSIGN_ORGANIZATION_ROLES)),
    assignments: RoleAssignmentService = Depends(get_role_assignment_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Give a user one of the organization's roles. A user holds one role per organization."""
    assignment = await assignments.assign_role(
        user_id,
        assignment_data.role_id,
        PermissionScope.ORGANIZATION,
        organization_id,
    )
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="assign",
        entity_type="assignment",
        entity_id=assignment.id,
        organization_id=organization_id,
        details={"user_id": user_id, "role_id": assignment_data.role_id},
    )
    return assignment


@router.delete("/{organization_id}/users/{user_id}/assignments", status_code=status.HTTP_204_NO_CONTENT)
async def remove_organization_role(
    organization_id: str,
    user_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.ASSIGN_ORGANIZATION_ROLES)),
    assignments: RoleAssignmentService = Depends(get_role_assignment_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Remove a user's role in the organization."""
    await assignments.remove_assignment(user_id, PermissionScope.ORGANIZATION, organization_id)
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="unassign",
        entity_type="assignment",
        organization_id=organization_id,
        details={"user_id": user_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
