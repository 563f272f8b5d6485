"""
Permission catalog, authorization checks and audit logging.

Services are created once per process with a session factory and open a
short-lived session per call, so they can be shared across requests.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import InvalidArgumentError
from app.features.permissions.models import (
    AuditLog,
    Permission,
    PermissionScope,
    scope_key_for,
)
from app.features.roles.models import UserRoleAssignment, role_permissions
from app.utils import get_logger

log = get_logger(__name__)


class PermissionCatalog:
    """Read-only access to the seeded permission catalog."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_all(self) -> List[Permission]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Permission).order_by(Permission.scope, Permission.name)
            )
            return list(result.scalars().all())

    async def list_by_scope(self, scope: PermissionScope) -> List[Permission]:
        async with self._session_factory() as session:
            return await self.list_by_scope_in(session, scope)

    async def get_by_name(self, name: str) -> Optional[Permission]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Permission).where(Permission.name == name)
            )
            return result.scalar_one_or_none()

    @staticmethod
    async def list_by_scope_in(
        session: AsyncSession,
        scope: PermissionScope,
    ) -> List[Permission]:
        result = await session.execute(
            select(Permission)
            .where(Permission.scope == scope)
            .order_by(Permission.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def resolve(
        session: AsyncSession,
        names: Iterable[str],
        scope: PermissionScope,
    ) -> List[Permission]:
        """
        Load permissions by name, restricted to ``scope``.

        Args:
            session: Session of the calling unit of work
            names: Permission names, duplicates allowed
            scope: Scope every permission must carry

        Returns:
            Matching permissions ordered by name

        Raises:
            InvalidArgumentError: If any name is unknown or belongs to another scope
        """
        wanted = set(names)
        if not wanted:
            return []

        result = await session.execute(
            select(Permission)
            .where(Permission.name.in_(wanted), Permission.scope == scope)
            .order_by(Permission.name)
        )
        permissions = list(result.scalars().all())

        missing = sorted(wanted - {permission.name for permission in permissions})
        if missing:
            raise InvalidArgumentError(
                f"Unknown or out-of-scope permissions for a {scope.value} role: "
                f"{', '.join(missing)}"
            )
        return permissions


class AuthorizationService:
    """Answers whether a user holds a permission in a scope context."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _granted_permissions(user_id: str, scope: PermissionScope, scope_id: Optional[str]):
        # A user has at most one assignment per scope key, so this walks one role
        return (
            select(Permission.name)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == role_permissions.c.role_id)
            .where(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.scope == scope,
                UserRoleAssignment.scope_key == scope_key_for(scope_id),
            )
        )

    async def has_permission(
        self,
        user_id: str,
        permission_name: str,
        scope: PermissionScope,
        scope_id: Optional[str] = None,
    ) -> bool:
        """
        Check a permission for a user in one scope context.

        Missing assignments and roles without the permission both yield
        False; global checks ignore ``scope_id``.
        """
        if scope is PermissionScope.GLOBAL:
            scope_id = None

        async with self._session_factory() as session:
            result = await session.execute(
                self._granted_permissions(user_id, scope, scope_id)
                .where(Permission.name == permission_name)
                .limit(1)
            )
            granted = result.scalar_one_or_none() is not None

        log.debug(
            "Permission check user=%s permission=%s scope=%s scope_id=%s granted=%s",
            user_id, permission_name, scope.value, scope_id, granted,
        )
        return granted

    async def get_user_permissions(
        self,
        user_id: str,
        scope: PermissionScope,
        scope_id: Optional[str] = None,
    ) -> List[str]:
        if scope is PermissionScope.GLOBAL:
            scope_id = None

        async with self._session_factory() as session:
            result = await session.execute(
                self._granted_permissions(user_id, scope, scope_id).order_by(Permission.name)
            )
            return list(result.scalars().all())


class AuditLogService:
    """Writes and pages through RBAC audit entries."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(
        self,
        user_id: Optional[str],
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """
        Persist an audit entry in its own transaction.

        Runs as a background task after the response, so the entry is only
        written for mutations that already committed.
        """
        async with self._session_factory.begin() as session:
            entry = AuditLog(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                organization_id=organization_id,
                details=details,
                ip_address=ip_address,
                user_agent=user_agent[:255] if user_agent else None,
            )
            session.add(entry)

        log.info("Audit %s %s %s by user %s", action, entity_type, entity_id, user_id)
        return entry

    async def list_logs(
        self,
        page: int = 1,
        page_size: int = 50,
        user_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> Tuple[List[AuditLog], int]:
        """Return one page of entries, newest first, and the total count."""
        if page < 1 or page_size < 1:
            raise InvalidArgumentError("page and page_size must be positive")

        query = select(AuditLog)
        if user_id:
            query = query.where(AuditLog.user_id == user_id)
        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
        if organization_id:
            query = query.where(AuditLog.organization_id == organization_id)

        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(query.subquery())
            )
            result = await session.execute(
                query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            return list(result.scalars().all()), total or 0
