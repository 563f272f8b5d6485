import pytest
from sqlalchemy import func, select

from app.core.errors import InvalidArgumentError, NotFoundError
from app.features.events.models import Event
from app.features.permissions.constants import PermissionName
from app.features.permissions.models import PermissionScope
from app.features.roles.models import Role, UserRoleAssignment, role_permissions

from .factories import MISSING_ID, create_event, create_organization, create_user


async def test_update_organization(session_factory, organization_service) -> None:
    organization = await create_organization(session_factory)

    updated = await organization_service.update_organization(organization.id, name="  Kick Off Arena ")
    assert updated.name == "Kick Off Arena"
    assert updated.is_active

    updated = await organization_service.update_organization(organization.id, is_active=False)
    assert updated.name == "Kick Off Arena"
    assert not (await organization_service.get_organization(organization.id)).is_active


async def test_update_organization_validates(session_factory, organization_service) -> None:
    organization = await create_organization(session_factory)

    with pytest.raises(InvalidArgumentError):
        await organization_service.update_organization(organization.id, name="   ")
    with pytest.raises(InvalidArgumentError):
        await organization_service.update_organization("nope", name="Arena")
    with pytest.raises(NotFoundError):
        await organization_service.update_organization(MISSING_ID, name="Arena")


async def test_delete_organization_removes_scoped_roles_and_assignments(
    session_factory, organization_service, role_service, assignment_service, authorization, admin_user
) -> None:
    organization = await create_organization(session_factory)
    other = await create_organization(session_factory, name="Other Arena")
    event = await create_event(session_factory, organization.id)
    member = await create_user(session_factory)

    await organization_service.assign_owner(organization.id, admin_user.id)
    manager = await role_service.create_role(
        "Manager", PermissionScope.ORGANIZATION, organization.id, [PermissionName.VIEW_TURF]
    )
    steward = await role_service.create_role(
        "Steward", PermissionScope.EVENT, event.id, [PermissionName.MANAGE_EVENT]
    )
    kept = await role_service.create_role("Manager", PermissionScope.ORGANIZATION, other.id)
    await assignment_service.assign_role(member.id, manager.id, PermissionScope.ORGANIZATION, organization.id)
    await assignment_service.assign_role(member.id, steward.id, PermissionScope.EVENT, event.id)
    await assignment_service.assign_role(member.id, kept.id, PermissionScope.ORGANIZATION, other.id)

    await organization_service.delete_organization(organization.id)

    with pytest.raises(NotFoundError):
        await organization_service.get_organization(organization.id)
    async with session_factory() as session:
        assert await session.get(Event, event.id) is None
        remaining_roles = (await session.execute(select(Role.id))).scalars().all()
        orphaned_grants = await session.scalar(
            select(func.count()).select_from(role_permissions).where(
                role_permissions.c.role_id.in_([manager.id, steward.id])
            )
        )
    assert manager.id not in remaining_roles
    assert steward.id not in remaining_roles
    assert kept.id in remaining_roles
    assert orphaned_grants == 0

    assignments = await assignment_service.list_user_assignments(member.id)
    assert [a.role_id for a in assignments] == [kept.id]
    # The owner keeps the global Admin role
    assert await authorization.has_permission(
        admin_user.id, PermissionName.ACCESS_ADMIN_DASHBOARD, PermissionScope.GLOBAL
    )
    admin_assignments = await assignment_service.list_user_assignments(admin_user.id)
    assert [a.scope for a in admin_assignments] == [PermissionScope.GLOBAL]


async def test_delete_missing_organization(organization_service) -> None:
    with pytest.raises(NotFoundError):
        await organization_service.delete_organization(MISSING_ID)
