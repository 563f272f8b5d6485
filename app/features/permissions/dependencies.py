"""
Permission gate and service providers for route protection.

Implements:
- Cached service providers (overridable through ``app.dependency_overrides``)
- ``require_permission`` FastAPI dependency
- Audit logging helper for background tasks
"""
from functools import lru_cache
from typing import Any, Dict, Optional
from fastapi import BackgroundTasks, Depends, Request

from app.core.database.base import is_valid_ulid
from app.core.database.engine import AsyncSessionLocal
from app.core.errors import ForbiddenError, InvalidArgumentError, ServiceError
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.constants import SCOPE_PATH_PARAMS
from app.features.permissions.service import (
    AuditLogService,
    AuthorizationService,
    PermissionCatalog,
)
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Service Providers
# ============================================================================

@lru_cache(maxsize=1)
def get_permission_catalog() -> PermissionCatalog:
    return PermissionCatalog(AsyncSessionLocal)


@lru_cache(maxsize=1)
def get_authorization_service() -> AuthorizationService:
    return AuthorizationService(AsyncSessionLocal)


@lru_cache(maxsize=1)
def get_audit_log_service() -> AuditLogService:
    return AuditLogService(AsyncSessionLocal)


# ============================================================================
# Permission Gate
# ============================================================================

def require_permission(permission_name: str):
    """
    FastAPI dependency to require a specific permission.
    
    The scope comes from the catalog entry. For ORGANIZATION and EVENT
    permissions the instance id is read from the ``organization_id`` or
    ``event_id`` path parameter of the protected route.
    
    Usage:
        @router.post("/organizations/{organization_id}/roles")
        async def create_role(
            user: User = Depends(require_permission("manage_organization_roles"))
        ):
            pass
    
    Args:
        permission_name: Catalog name of the required permission
    
    Returns:
        Dependency function that returns the current user if they have permission
    
    Raises:
        ServiceError: 500 if the permission is missing from the catalog
        InvalidArgumentError: 400 if the route lacks a valid context id
        ForbiddenError: 403 if the user doesn't have the permission
    """
    async def permission_dependency(
        request: Request,
        current_user: User = Depends(get_current_user),
        catalog: PermissionCatalog = Depends(get_permission_catalog),
        authorization: AuthorizationService = Depends(get_authorization_service),
    ) -> User:
        permission = await catalog.get_by_name(permission_name)
        if permission is None:
            log.error(f"Permission '{permission_name}' is not configured in the catalog")
            raise ServiceError(f"Permission '{permission_name}' is not configured")
        
        scope_id = None
        if permission.scope.requires_instance:
            param = SCOPE_PATH_PARAMS[permission.scope]
            scope_id = request.path_params.get(param)
            if not scope_id:
                raise InvalidArgumentError(f"{param} is required for {permission.scope.value} permissions")
            if not is_valid_ulid(scope_id):
                raise InvalidArgumentError(f"Invalid {param}")
        
        if not await authorization.has_permission(current_user.id, permission_name, permission.scope, scope_id):
            log.info(f"Denied {permission_name} to user {current_user.id} (scope_id={scope_id})")
            raise ForbiddenError(f"You do not have permission to perform this action ({permission_name})")
        
        return current_user
    
    return permission_dependency


# ============================================================================
# Audit Logging
# ============================================================================

def schedule_audit_log(
    background_tasks: BackgroundTasks,
    audit: AuditLogService,
    request: Request,
    user: User,
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Queue an audit log entry to be written after the response is sent.
    
    Args:
        background_tasks: Request background tasks
        audit: Audit log service
        request: Incoming request, for client IP and user agent
        user: User performing the action
        action: Action performed (e.g., "create", "update", "delete", "assign")
        entity_type: Type of entity (e.g., "role", "assignment", "organization")
        entity_id: ID of the entity
        organization_id: Organization context
        details: Additional details
    """
    background_tasks.add_task(
        audit.record,
        user_id=user.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        organization_id=organization_id,
        details=details,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
