"""
Role management and user-role assignment services.

Write operations run in a single transaction opened with
``session_factory.begin()``; uniqueness is left to the database and an
``IntegrityError`` on flush is reported as ``ConflictError``.
"""
from typing import Dict, Iterable, List, Optional, Type

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.base import Base, is_valid_ulid
from app.core.errors import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from app.features.events.models import Event
from app.features.organizations.models import Organization
from app.features.permissions.constants import ORGANIZATION_OWNER_ROLE
from app.features.permissions.models import PermissionScope, scope_key_for
from app.features.permissions.service import PermissionCatalog
from app.features.roles.models import Role, UserRoleAssignment
from app.features.users.models import User
from app.utils import get_logger

log = get_logger(__name__)


# Entity that a non-global scope_id refers to
SCOPE_INSTANCE_MODELS: Dict[PermissionScope, Type[Base]] = {
    PermissionScope.ORGANIZATION: Organization,
    PermissionScope.EVENT: Event,
}


def require_valid_id(value: Optional[str], label: str) -> str:
    if not value or not is_valid_ulid(value):
        raise InvalidArgumentError(f"Invalid {label} id")
    return value


async def ensure_scope_instance(
    session: AsyncSession,
    scope: PermissionScope,
    scope_id: Optional[str],
) -> str:
    """
    Validate the scope_id of an ORGANIZATION or EVENT context.

    Raises:
        InvalidArgumentError: If scope_id is missing or malformed
        NotFoundError: If the organization or event does not exist
    """
    if not scope_id:
        raise InvalidArgumentError(f"scope_id is required for {scope.value} scope")
    require_valid_id(scope_id, scope.value)

    model = SCOPE_INSTANCE_MODELS[scope]
    if await session.get(model, scope_id) is None:
        raise NotFoundError(f"{scope.value.capitalize()} not found")
    return scope_id


def check_reserved_name(name: str, scope: PermissionScope, is_default: bool) -> None:
    # The owner bootstrap looks this role up by name
    if scope is PermissionScope.ORGANIZATION and not is_default and name == ORGANIZATION_OWNER_ROLE:
        raise InvalidArgumentError(f"Role name '{name}' is reserved")


class RoleService:
    """Create, update, list and delete scoped roles."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catalog: PermissionCatalog,
    ):
        self._session_factory = session_factory
        self._catalog = catalog

    async def create_role(
        self,
        name: str,
        scope: PermissionScope,
        scope_id: Optional[str] = None,
        permission_names: Iterable[str] = (),
        is_default: bool = False,
    ) -> Role:
        """
        Create a role bound to a scope context.

        Args:
            name: Role name, unique within (scope, scope_id)
            scope: GLOBAL, ORGANIZATION or EVENT
            scope_id: Organization or event id; must be omitted for GLOBAL
            permission_names: Permissions granted, all of ``scope``
            is_default: Marks system managed roles that cannot be deleted

        Returns:
            The persisted role with its permissions loaded

        Raises:
            InvalidArgumentError: Empty name, scope/scope_id mismatch or bad permissions
            NotFoundError: The scope instance does not exist
            ConflictError: A role with this name already exists in the context
        """
        async with self._session_factory.begin() as session:
            return await self.create_role_in(
                session, name, scope, scope_id, permission_names, is_default
            )

    async def create_role_in(
        self,
        session: AsyncSession,
        name: str,
        scope: PermissionScope,
        scope_id: Optional[str],
        permission_names: Iterable[str],
        is_default: bool = False,
    ) -> Role:
        name = (name or "").strip()
        if not name:
            raise InvalidArgumentError("Role name is required")
        check_reserved_name(name, scope, is_default)

        if scope.requires_instance:
            await ensure_scope_instance(session, scope, scope_id)
        elif scope_id is not None:
            raise InvalidArgumentError("Global roles cannot have a scope_id")

        permissions = await self._catalog.resolve(session, permission_names, scope)

        role = Role(name=name, scope=scope, scope_id=scope_id, is_default=is_default)
        role.permissions = permissions
        session.add(role)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Role '{name}' already exists in this scope") from exc

        log.info(
            "Created %s role %s (%s) scope_id=%s with %d permissions",
            scope.value, role.id, name, scope_id, len(permissions),
        )
        return role

    async def update_role_permissions(
        self,
        role_id: str,
        permission_names: Optional[Iterable[str]] = None,
        name: Optional[str] = None,
        within_scope_id: Optional[str] = None,
    ) -> Role:
        """
        Replace a role's permission set, optionally renaming it.

        ``permission_names=None`` keeps the current permissions (rename only).
        ``within_scope_id`` restricts the update to roles bound to that
        organization or event; other roles are reported as not found.
        """
        require_valid_id(role_id, "role")

        async with self._session_factory.begin() as session:
            role = await self._get_role(session, role_id)
            if within_scope_id is not None and role.scope_id != within_scope_id:
                raise NotFoundError("Role not found")

            if permission_names is not None:
                role.permissions = await self._catalog.resolve(session, permission_names, role.scope)

            if name is not None:
                name = name.strip()
                if not name:
                    raise InvalidArgumentError("Role name is required")
                check_reserved_name(name, role.scope, role.is_default)
                role.name = name

            # The role is expired once a failed flush rolls back
            role_name = role.name
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ConflictError(f"Role '{role_name}' already exists in this scope") from exc

            log.info("Updated role %s permissions: %s", role.id, role.permission_names)
            return role

    async def get_roles_by_scope_instance(
        self,
        scope: PermissionScope,
        scope_id: str,
    ) -> List[Role]:
        if not scope.requires_instance:
            raise InvalidArgumentError("Use list_global_roles for global roles")

        async with self._session_factory() as session:
            await ensure_scope_instance(session, scope, scope_id)
            result = await session.execute(
                select(Role)
                .where(Role.scope == scope, Role.scope_id == scope_id)
                .order_by(Role.name)
            )
            return list(result.scalars().all())

    async def list_global_roles(self) -> List[Role]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Role).where(Role.scope == PermissionScope.GLOBAL).order_by(Role.name)
            )
            return list(result.scalars().all())

    async def get_role(self, role_id: str) -> Role:
        require_valid_id(role_id, "role")
        async with self._session_factory() as session:
            return await self._get_role(session, role_id)

    async def get_role_permissions(self, role_id: str) -> List[str]:
        role = await self.get_role(role_id)
        return role.permission_names

    async def delete_role(self, role_id: str) -> None:
        """
        Delete a role together with every assignment of it.

        Raises:
            NotFoundError: The role does not exist
            ForbiddenError: The role is a default (system managed) role
        """
        require_valid_id(role_id, "role")

        async with self._session_factory.begin() as session:
            role = await self._get_role(session, role_id)
            if role.is_default:
                raise ForbiddenError("Default roles cannot be deleted")

            result = await session.execute(
                delete(UserRoleAssignment).where(UserRoleAssignment.role_id == role.id)
            )
            await session.delete(role)

        log.info("Deleted role %s (%s) and %d assignments", role_id, role.name, result.rowcount)

    @staticmethod
    async def _get_role(session: AsyncSession, role_id: str) -> Role:
        role = await session.get(Role, role_id)
        if role is None:
            raise NotFoundError("Role not found")
        return role


class RoleAssignmentService:
    """Bind users to roles; one role per user per scope context."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def assign_role(
        self,
        user_id: str,
        role_id: str,
        scope: PermissionScope,
        scope_id: Optional[str] = None,
    ) -> UserRoleAssignment:
        """
        Assign a role to a user in the role's scope context.

        Args:
            user_id: User receiving the role
            role_id: Role to assign
            scope: Expected scope of the role
            scope_id: Organization or event id, required for non-global scopes

        Returns:
            The new assignment

        Raises:
            InvalidArgumentError: Malformed ids or a scope mismatch with the role
            NotFoundError: User, role or scope instance does not exist
            ForbiddenError: The role is a default role, handed out only by the system
            ConflictError: The user already has a role in this scope context
        """
        require_valid_id(user_id, "user")
        require_valid_id(role_id, "role")

        async with self._session_factory.begin() as session:
            if await session.get(User, user_id) is None:
                raise NotFoundError("User not found")

            role = await session.get(Role, role_id)
            if role is None:
                raise NotFoundError("Role not found")
            if role.is_default:
                raise ForbiddenError("Default roles cannot be assigned directly")

            if role.scope != scope:
                raise InvalidArgumentError(
                    f"Role scope mismatch: role is {role.scope.value}, requested {scope.value}"
                )

            if scope.requires_instance:
                await ensure_scope_instance(session, scope, scope_id)
                if role.scope_id != scope_id:
                    raise InvalidArgumentError(f"Role does not belong to this {scope.value}")
            elif scope_id is not None:
                log.warning("Ignoring scope_id %s for global role %s", scope_id, role_id)

            return await self.assign_in(session, user_id, role)

    async def assign_in(
        self,
        session: AsyncSession,
        user_id: str,
        role: Role,
        replace: bool = False,
    ) -> UserRoleAssignment:
        """Insert an assignment in the caller's transaction, optionally dropping a prior one."""
        if replace:
            await session.execute(
                delete(UserRoleAssignment).where(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.scope_key == role.scope_key,
                )
            )

        assignment = UserRoleAssignment.for_role(user_id, role)
        # The role is expired once a failed flush rolls back
        role_id, role_name, scope_key = role.id, role.name, role.scope_key
        session.add(assignment)
        try:
            await session.flush()
        except IntegrityError as exc:
            log.debug("Assignment conflict for user %s in %s", user_id, scope_key)
            raise ConflictError("User already has a role in this scope") from exc

        log.info("Assigned role %s (%s) to user %s in %s", role_id, role_name, user_id, scope_key)
        return assignment

    async def list_user_assignments(self, user_id: str) -> List[UserRoleAssignment]:
        require_valid_id(user_id, "user")
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserRoleAssignment)
                .where(UserRoleAssignment.user_id == user_id)
                .order_by(UserRoleAssignment.scope, UserRoleAssignment.created_at)
            )
            return list(result.scalars().all())

    async def remove_assignment(
        self,
        user_id: str,
        scope: PermissionScope,
        scope_id: Optional[str] = None,
    ) -> None:
        """
        Remove the user's assignment in one scope context.

        Assignments of default roles (platform admin, organization owner)
        are system managed and cannot be removed here.
        """
        require_valid_id(user_id, "user")
        if scope is PermissionScope.GLOBAL:
            scope_id = None
        else:
            require_valid_id(scope_id, scope.value)

        async with self._session_factory.begin() as session:
            result = await session.execute(
                select(UserRoleAssignment, Role.is_default)
                .join(Role, Role.id == UserRoleAssignment.role_id)
                .where(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.scope == scope,
                    UserRoleAssignment.scope_key == scope_key_for(scope_id),
                )
            )
            row = result.one_or_none()
            if row is None:
                raise NotFoundError("Assignment not found")

            assignment, is_default = row
            if is_default:
                raise ForbiddenError("Default role assignments cannot be removed")
            await session.delete(assignment)

        log.info("Removed %s assignment of user %s scope_id=%s", scope.value, user_id, scope_id)
