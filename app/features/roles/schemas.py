"""
Pydantic schemas for roles and role assignments.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.permissions.models import PermissionScope
from app.features.permissions.schemas import PermissionResponse


# ============================================================================
# Role Schemas
# ============================================================================

class RoleCreate(BaseModel):
    """Schema for creating a role in the scope given by the route."""
    name: str = Field(..., min_length=1, max_length=100, description="Role name, unique within its scope")
    permissions: List[str] = Field(default_factory=list, description="Permission names granted by the role")
    is_default: bool = Field(False, description="System managed role that cannot be deleted")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Role name must not be blank")
        return v.strip()


class RoleUpdate(BaseModel):
    """Schema for replacing a role's permissions, renaming it, or both."""
    permissions: Optional[List[str]] = Field(None, description="Full new permission set; omit to keep the current one")
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class RoleResponse(BaseModel):
    """Schema for role response."""
    id: str
    name: str
    scope: PermissionScope
    scope_id: Optional[str] = None
    is_default: bool
    permissions: List[PermissionResponse] = []
    created_at: datetime
    updated_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class RoleListResponse(BaseModel):
    roles: List[RoleResponse]


# ============================================================================
# Assignment Schemas
# ============================================================================

class AssignRoleRequest(BaseModel):
    """Schema for assigning a role to a user."""
    role_id: str = Field(..., min_length=1, description="Role to assign")


class AssignmentResponse(BaseModel):
    """Schema for user-role assignment response."""
    id: str
    user_id: str
    role_id: str
    scope: PermissionScope
    scope_id: Optional[str] = None
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)
