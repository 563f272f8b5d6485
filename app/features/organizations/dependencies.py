"""
Service providers for the organizations feature.
"""
from functools import lru_cache

from app.core.database.engine import AsyncSessionLocal
from app.features.permissions.dependencies import get_permission_catalog
from app.features.roles.dependencies import get_role_assignment_service
from app.features.organizations.service import OrganizationService


@lru_cache(maxsize=1)
def get_organization_service() -> OrganizationService:
    return OrganizationService(
        AsyncSessionLocal,
        get_permission_catalog(),
        get_role_assignment_service(),
    )
