"""
Permission catalog, permission check and audit log API routes.
"""
import math
from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.constants import PermissionName
from app.features.permissions.models import PermissionScope
from app.features.permissions.schemas import (
    PermissionResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
    UserPermissionsResponse,
    AuditLogResponse,
    AuditLogListResponse,
)
from app.features.permissions.dependencies import (
    get_audit_log_service,
    get_authorization_service,
    get_permission_catalog,
    require_permission,
)
from app.features.permissions.service import (
    AuditLogService,
    AuthorizationService,
    PermissionCatalog,
)


router = APIRouter()
audit_router = APIRouter()


# ============================================================================
# Permission Routes
# ============================================================================

@router.get("", response_model=List[PermissionResponse])
async def list_permissions(
    current_user: User = Depends(get_current_user),
    catalog: PermissionCatalog = Depends(get_permission_catalog),
):
    """List the whole permission catalog."""
    return await catalog.list_all()


@router.get("/scope/{scope}", response_model=List[PermissionResponse])
async def list_permissions_by_scope(
    scope: PermissionScope,
    current_user: User = Depends(require_permission(PermissionName.VIEW_PERMISSIONS)),
    catalog: PermissionCatalog = Depends(get_permission_catalog),
):
    """List permissions that can be granted by roles of one scope."""
    return await catalog.list_by_scope(scope)


# ============================================================================
# Permission Check Routes
# ============================================================================

@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check: PermissionCheckRequest,
    current_user: User = Depends(get_current_user),
    authorization: AuthorizationService = Depends(get_authorization_service),
):
    """Check whether the current user holds a permission in a scope context."""
    granted = await authorization.has_permission(
        current_user.id, check.permission, check.scope, check.scope_id
    )
    return PermissionCheckResponse(has_permission=granted)


@router.get("/me", response_model=UserPermissionsResponse)
async def get_my_permissions(
    scope: PermissionScope = PermissionScope.GLOBAL,
    scope_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    authorization: AuthorizationService = Depends(get_authorization_service),
):
    """List the permission names the current user holds in a scope context."""
    if scope is PermissionScope.GLOBAL:
        scope_id = None
    permissions = await authorization.get_user_permissions(current_user.id, scope, scope_id)
    return UserPermissionsResponse(
        user_id=current_user.id,
        scope=scope,
        scope_id=scope_id,
        permissions=permissions,
    )


# ============================================================================
# Audit Log Routes
# ============================================================================

@audit_router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    user_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    organization_id: Optional[str] = None,
    current_user: User = Depends(require_permission(PermissionName.VIEW_ADMIN_LOGS)),
    audit: AuditLogService = Depends(get_audit_log_service),
):
    """List RBAC audit log entries, newest first."""
    items, total = await audit.list_logs(
        page=page,
        page_size=page_size,
        user_id=user_id,
        entity_type=entity_type,
        organization_id=organization_id,
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total else 0,
    )
