"""
Service providers for the roles feature.
"""
from functools import lru_cache

from app.core.database.engine import AsyncSessionLocal
from app.features.permissions.dependencies import get_permission_catalog
from app.features.roles.service import RoleAssignmentService, RoleService


@lru_cache(maxsize=1)
def get_role_service() -> RoleService:
    return RoleService(AsyncSessionLocal, get_permission_catalog())


@lru_cache(maxsize=1)
def get_role_assignment_service() -> RoleAssignmentService:
    return RoleAssignmentService(AsyncSessionLocal)
