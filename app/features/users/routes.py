"""
User feature routes.
"""
from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status

from app.core import config
from app.core.rate_limit import limiter
from app.features.users.dependencies import get_current_user, get_user_service
from app.features.users.models import User
from app.features.users.schemas import UserResponse
from app.features.users.service import UserService
from app.features.permissions.constants import PermissionName
from app.features.permissions.dependencies import (
    get_audit_log_service,
    require_permission,
    schedule_audit_log,
)
from app.features.permissions.models import PermissionScope
from app.features.permissions.service import AuditLogService
from app.features.roles.dependencies import get_role_assignment_service
from app.features.roles.schemas import AssignRoleRequest, AssignmentResponse
from app.features.roles.service import RoleAssignmentService


router = APIRouter(tags=["users"])


@router.get("", response_model=List[UserResponse])
async def list_users(
    skip: int = 0,
    limit: int = 100,
    current_user: User = Depends(require_permission(PermissionName.VIEW_USERS)),
    users: UserService = Depends(get_user_service),
):
    """List platform users, oldest first."""
    return await users.list_users(skip=skip, limit=limit)


@router.get("/without-global-roles", response_model=List[UserResponse])
async def list_users_without_global_roles(
    skip: int = 0,
    limit: int = 100,
    current_user: User = Depends(require_permission(PermissionName.VIEW_USERS)),
    users: UserService = Depends(get_user_service),
):
    """List users that hold no global role."""
    return await users.list_users_without_global_role(skip=skip, limit=limit)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the current authenticated user."""
    return current_user


@router.get("/me/assignments", response_model=List[AssignmentResponse])
async def get_my_assignments(
    current_user: User = Depends(get_current_user),
    assignments: RoleAssignmentService = Depends(get_role_assignment_service),
):
    """List the current user's role assignments across all scopes."""
    return await assignments.list_user_assignments(current_user.id)


@router.post(
    "/{user_id}/assignments/global",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(config.RATE_LIMIT)
async def assign_global_role(
    user_id: str,
    assignment_data: AssignRoleRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: User = Depends(require_permission(PermissionName.MANAGE_USER_GLOBAL_ROLES)),
    assignments: RoleAssignmentService = Depends(get_role_assignment_service),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """Give a user a global role. A user holds at most one global role."""
    assignment = await assignments.assign_role(user_id, assignment_data.role_id, PermissionScope.GLOBAL)
    schedule_audit_log(
        background_tasks, audit, request, current_user,
        action="assign",
        entity_type="assignment",
        entity_id=assignment.id,
        details={"user_id": user_id, "role_id": assignment_data.role_id},
    )
    return assignment
