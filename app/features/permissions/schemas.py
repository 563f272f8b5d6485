"""
Pydantic schemas for the permission catalog, permission checks and audit logs.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from app.features.permissions.models import PermissionScope


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionResponse(BaseModel):
    """Schema for permission response."""
    id: str
    name: str
    description: Optional[str] = None
    scope: PermissionScope
    
    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Schema for checking whether the caller holds a permission."""
    permission: str = Field(..., min_length=1, max_length=100, description="Permission name")
    scope: PermissionScope = Field(PermissionScope.GLOBAL, description="Scope of the check")
    scope_id: Optional[str] = Field(None, description="Organization or event ID for non-global scopes")


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    has_permission: bool


class UserPermissionsResponse(BaseModel):
    """Permissions the caller holds in one scope context."""
    user_id: str
    scope: PermissionScope
    scope_id: Optional[str] = None
    permissions: List[str] = []


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    entity_type: str
    entity_id: Optional[str]
    organization_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
