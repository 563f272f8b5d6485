"""
Pydantic schemas for organization requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field


class OrganizationCreate(BaseModel):
    """Schema for creating a new organization."""
    name: str = Field(..., min_length=1, max_length=255)


class OrganizationUpdate(BaseModel):
    """Schema for updating an organization. Omitted fields are left unchanged."""
    name: str | None = Field(None, min_length=1, max_length=255)
    is_active: bool | None = None


class OrganizationResponse(BaseModel):
    """Schema for organization responses."""
    id: str
    name: str
    owner_id: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    
    model_config = {"from_attributes": True}


class AssignOwnerRequest(BaseModel):
    """Schema for nominating the owner of an organization."""
    user_id: str = Field(..., min_length=1, description="User who becomes the owner")
