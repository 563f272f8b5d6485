"""
Organization service, including the one-time owner bootstrap.
"""
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from app.features.events.models import Event
from app.features.organizations.models import Organization
from app.features.permissions.constants import ORGANIZATION_OWNER_ROLE
from app.features.permissions.models import PermissionScope
from app.features.permissions.service import PermissionCatalog
from app.features.roles.models import Role, UserRoleAssignment
from app.features.roles.service import RoleAssignmentService, require_valid_id
from app.features.users.models import User
from app.utils import get_logger

log = get_logger(__name__)


class OrganizationService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        catalog: PermissionCatalog,
        assignments: RoleAssignmentService,
    ):
        self._session_factory = session_factory
        self._catalog = catalog
        self._assignments = assignments

    async def create_organization(self, name: str) -> Organization:
        name = (name or "").strip()
        if not name:
            raise InvalidArgumentError("Organization name is required")

        async with self._session_factory.begin() as session:
            organization = Organization(name=name)
            session.add(organization)
            await session.flush()

        log.info("Created organization %s (%s)", organization.id, name)
        return organization

    async def get_organization(self, organization_id: str) -> Organization:
        require_valid_id(organization_id, "organization")
        async with self._session_factory() as session:
            organization = await session.get(Organization, organization_id)
            if organization is None:
                raise NotFoundError("Organization not found")
            return organization

    async def update_organization(
        self,
        organization_id: str,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Organization:
        require_valid_id(organization_id, "organization")
        if name is not None:
            name = name.strip()
            if not name:
                raise InvalidArgumentError("Organization name is required")

        async with self._session_factory.begin() as session:
            organization = await session.get(Organization, organization_id)
            if organization is None:
                raise NotFoundError("Organization not found")
            if name is not None:
                organization.name = name
            if is_active is not None:
                organization.is_active = is_active
            await session.flush()

        log.info("Updated organization %s name=%s is_active=%s", organization_id, name, is_active)
        return organization

    async def delete_organization(self, organization_id: str) -> None:
        """
        Delete an organization with every role and assignment bound to it.

        Roles and assignments of the organization's events go too; the
        events themselves are removed by the foreign key cascade.

        Raises:
            InvalidArgumentError: Malformed id
            NotFoundError: The organization does not exist
        """
        require_valid_id(organization_id, "organization")

        async with self._session_factory.begin() as session:
            organization = await session.get(Organization, organization_id)
            if organization is None:
                raise NotFoundError("Organization not found")

            result = await session.execute(
                select(Event.id).where(Event.organization_id == organization_id)
            )
            scope_keys = [organization_id, *result.scalars().all()]

            assignments = await session.execute(
                delete(UserRoleAssignment).where(
                    UserRoleAssignment.scope != PermissionScope.GLOBAL,
                    UserRoleAssignment.scope_key.in_(scope_keys),
                )
            )
            roles = await session.execute(
                delete(Role).where(
                    Role.scope != PermissionScope.GLOBAL,
                    Role.scope_key.in_(scope_keys),
                )
            )
            await session.delete(organization)

        log.info(
            "Deleted organization %s with %d events, %d roles and %d assignments",
            organization_id, len(scope_keys) - 1, roles.rowcount, assignments.rowcount,
        )

    async def assign_owner(self, organization_id: str, user_id: str) -> Organization:
        """
        Make a user the owner of an organization.

        In one transaction: find or create the organization's default
        "Organization Owner" role holding every ORGANIZATION permission,
        replace any role the user already has in the organization with it
        and stamp ``owner_id``.

        Args:
            organization_id: Organization without an owner
            user_id: Nominated owner

        Returns:
            The updated organization

        Raises:
            InvalidArgumentError: Malformed ids
            NotFoundError: Organization or user does not exist
            ConflictError: The organization already has an owner
        """
        require_valid_id(organization_id, "organization")
        require_valid_id(user_id, "user")

        async with self._session_factory.begin() as session:
            organization = await session.get(Organization, organization_id)
            if organization is None:
                raise NotFoundError("Organization not found")
            if organization.owner_id is not None:
                raise ConflictError("Organization already has an owner")

            if await session.get(User, user_id) is None:
                raise NotFoundError("User not found")

            role = await self._get_or_create_owner_role(session, organization_id)
            await self._assignments.assign_in(session, user_id, role, replace=True)

            # Compare-and-set so a concurrent bootstrap cannot overwrite the owner
            result = await session.execute(
                update(Organization)
                .where(Organization.id == organization_id, Organization.owner_id.is_(None))
                .values(owner_id=user_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError("Organization already has an owner")
            await session.refresh(organization)

        log.info("User %s is now owner of organization %s", user_id, organization_id)
        return organization

    async def _get_or_create_owner_role(
        self,
        session: AsyncSession,
        organization_id: str,
    ) -> Role:
        result = await session.execute(
            select(Role).where(
                Role.name == ORGANIZATION_OWNER_ROLE,
                Role.scope == PermissionScope.ORGANIZATION,
                Role.scope_id == organization_id,
                Role.is_default.is_(True),
            )
        )
        role: Optional[Role] = result.scalar_one_or_none()
        if role is not None:
            return role

        role = Role(
            name=ORGANIZATION_OWNER_ROLE,
            scope=PermissionScope.ORGANIZATION,
            scope_id=organization_id,
            is_default=True,
        )
        role.permissions = await self._catalog.list_by_scope_in(session, PermissionScope.ORGANIZATION)
        session.add(role)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConflictError("Owner role was created concurrently, retry") from exc

        log.info(
            "Created owner role %s for organization %s with %d permissions",
            role.id, organization_id, len(role.permissions),
        )
        return role
