"""
HTTP tests through the full application, authenticated with real bearer tokens.
"""
from app import main
from app.features.permissions.constants import ORGANIZATION_OWNER_ROLE, PermissionName
from app.features.permissions.models import PermissionScope

from .factories import MISSING_ID, auth_headers, create_organization, create_user


async def test_health(client) -> None:
    assert (await client.get("/health")).json() == {"status": "healthy"}
    assert (await client.get("/")).json()["status"] == "online"


async def test_lifespan_initializes_database(monkeypatch) -> None:
    calls = []

    async def fake_init_db():
        calls.append("init")

    monkeypatch.setattr(main, "init_db", fake_init_db)
    app = main.create_app()

    async with app.router.lifespan_context(app):
        assert calls == ["init"]


async def test_requires_bearer_token(client, permissions) -> None:
    response = await client.get("/permissions")
    assert response.status_code in (401, 403)

    response = await client.get("/permissions", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


async def test_inactive_user_rejected(client, session_factory, permissions) -> None:
    user = await create_user(session_factory, is_active=False)

    response = await client.get("/users/me", headers=auth_headers(user))
    assert response.status_code == 403


async def test_list_permissions(client, session_factory, permissions) -> None:
    user = await create_user(session_factory)

    response = await client.get("/permissions", headers=auth_headers(user))

    assert response.status_code == 200
    assert len(response.json()) == len(permissions)


async def test_list_permissions_by_scope_is_gated(client, session_factory, admin_user) -> None:
    user = await create_user(session_factory)

    response = await client.get("/permissions/scope/organization", headers=auth_headers(user))
    assert response.status_code == 403

    response = await client.get("/permissions/scope/organization", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert {p["scope"] for p in response.json()} == {"organization"}


async def test_check_permission(client, admin_user) -> None:
    response = await client.post(
        "/permissions/check",
        json={"permission": PermissionName.ACCESS_ADMIN_DASHBOARD, "scope": "global"},
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 200
    assert response.json() == {"has_permission": True}


async def test_global_role_lifecycle(client, admin_user, audit) -> None:
    headers = auth_headers(admin_user)

    response = await client.post(
        "/roles/global",
        json={"name": "Support", "permissions": [PermissionName.VIEW_USERS]},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    role = response.json()
    assert role["scope"] == "global"
    assert [p["name"] for p in role["permissions"]] == [PermissionName.VIEW_USERS]

    response = await client.post(
        "/roles/global", json={"name": "Support", "permissions": []}, headers=headers
    )
    assert response.status_code == 409
    assert "already exists" in response.json()["detail"]

    response = await client.put(
        f"/roles/{role['id']}",
        json={"permissions": [PermissionName.VIEW_USERS, PermissionName.VIEW_ADMIN_LOGS]},
        headers=headers,
    )
    assert response.status_code == 200
    response = await client.get(f"/roles/{role['id']}/permissions", headers=headers)
    assert response.json() == [PermissionName.VIEW_ADMIN_LOGS, PermissionName.VIEW_USERS]

    response = await client.delete(f"/roles/{role['id']}", headers=headers)
    assert response.status_code == 204
    assert (await client.get(f"/roles/{role['id']}", headers=headers)).status_code == 404

    logs, total = await audit.list_logs(entity_type="role")
    assert total == 3
    assert [entry.action for entry in logs] == ["delete", "update", "create"]


async def test_out_of_scope_permission_is_bad_request(client, admin_user) -> None:
    response = await client.post(
        "/roles/global",
        json={"name": "Weird", "permissions": [PermissionName.VIEW_TURF]},
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 400
    assert PermissionName.VIEW_TURF in response.json()["detail"]


async def test_global_assignment(client, session_factory, admin_user) -> None:
    headers = auth_headers(admin_user)
    user = await create_user(session_factory)
    role = (await client.post(
        "/roles/global", json={"name": "Support", "permissions": []}, headers=headers
    )).json()

    response = await client.post(
        f"/users/{user.id}/assignments/global", json={"role_id": role["id"]}, headers=headers
    )
    assert response.status_code == 201
    assert response.json()["scope"] == "global"

    response = await client.post(
        f"/users/{user.id}/assignments/global", json={"role_id": role["id"]}, headers=headers
    )
    assert response.status_code == 409

    response = await client.get("/users/me/assignments", headers=auth_headers(user))
    assert [a["role_id"] for a in response.json()] == [role["id"]]


async def test_organization_flow(client, session_factory, admin_user, authorization) -> None:
    admin_headers = auth_headers(admin_user)
    owner = await create_user(session_factory)
    member = await create_user(session_factory)

    response = await client.post("/organizations", json={"name": "Kick Off Arena"}, headers=admin_headers)
    assert response.status_code == 201
    org_id = response.json()["id"]

    response = await client.post(
        f"/organizations/{org_id}/assign-owner", json={"user_id": owner.id}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["owner_id"] == owner.id

    response = await client.post(
        f"/organizations/{org_id}/assign-owner", json={"user_id": member.id}, headers=admin_headers
    )
    assert response.status_code == 409

    # The platform admin holds no organization permissions
    response = await client.get(f"/organizations/{org_id}/roles", headers=admin_headers)
    assert response.status_code == 403

    owner_headers = auth_headers(owner)
    response = await client.post(
        f"/organizations/{org_id}/roles",
        json={"name": "Manager", "permissions": [PermissionName.VIEW_TURF]},
        headers=owner_headers,
    )
    assert response.status_code == 201
    manager = response.json()
    assert manager["scope_id"] == org_id

    response = await client.put(
        f"/organizations/{org_id}/roles/{manager['id']}",
        json={"permissions": [PermissionName.VIEW_TURF, PermissionName.MANAGE_BOOKINGS]},
        headers=owner_headers,
    )
    assert response.status_code == 200

    response = await client.post(
        f"/organizations/{org_id}/users/{member.id}/assignments",
        json={"role_id": manager["id"]},
        headers=owner_headers,
    )
    assert response.status_code == 201
    assert await authorization.has_permission(
        member.id, PermissionName.MANAGE_BOOKINGS, PermissionScope.ORGANIZATION, org_id
    )

    response = await client.get(f"/organizations/{org_id}/roles", headers=owner_headers)
    assert sorted(role["name"] for role in response.json()["roles"]) == ["Manager", ORGANIZATION_OWNER_ROLE]

    # Members cannot manage roles
    response = await client.post(
        f"/organizations/{org_id}/roles", json={"name": "Staff"}, headers=auth_headers(member)
    )
    assert response.status_code == 403

    response = await client.delete(
        f"/organizations/{org_id}/users/{owner.id}/assignments", headers=owner_headers
    )
    assert response.status_code == 403

    response = await client.delete(
        f"/organizations/{org_id}/users/{member.id}/assignments", headers=owner_headers
    )
    assert response.status_code == 204


async def test_owner_cannot_touch_another_organizations_roles(client, session_factory, organization_service, role_service, permissions) -> None:
    owner = await create_user(session_factory)
    mine = await create_organization(session_factory, name="Mine")
    theirs = await create_organization(session_factory, name="Theirs")
    await organization_service.assign_owner(mine.id, owner.id)
    their_role = await role_service.create_role("Staff", PermissionScope.ORGANIZATION, theirs.id)

    response = await client.get(f"/organizations/{theirs.id}/roles", headers=auth_headers(owner))
    assert response.status_code == 403

    # Gate passes for "mine" but the role lives in "theirs"
    response = await client.put(
        f"/organizations/{mine.id}/roles/{their_role.id}",
        json={"permissions": []},
        headers=auth_headers(owner),
    )
    assert response.status_code == 404


async def test_invalid_context_id_is_bad_request(client, admin_user) -> None:
    response = await client.get("/organizations/not-an-id/roles", headers=auth_headers(admin_user))
    assert response.status_code == 400


async def test_missing_organization(client, admin_user) -> None:
    response = await client.get(f"/organizations/{MISSING_ID}", headers=auth_headers(admin_user))
    assert response.status_code == 404


async def test_unconfigured_permission_is_server_error(client, session_factory) -> None:
    # Catalog not seeded
    user = await create_user(session_factory)

    response = await client.get("/roles/global", headers=auth_headers(user))

    assert response.status_code == 500
    assert "not configured" in response.json()["detail"]


async def test_audit_logs(client, admin_user) -> None:
    headers = auth_headers(admin_user)
    await client.post("/organizations", json={"name": "Logged Arena"}, headers=headers)

    response = await client.get("/audit-logs", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["entity_type"] == "organization"
    assert body["items"][0]["user_id"] == admin_user.id


async def test_validation_errors_are_bad_request(client, admin_user) -> None:
    response = await client.post("/roles/global", json={"permissions": []}, headers=auth_headers(admin_user))

    assert response.status_code == 400
    assert "name" in response.json()


async def test_rename_role_keeps_permissions(client, admin_user) -> None:
    headers = auth_headers(admin_user)
    role = (await client.post(
        "/roles/global",
        json={"name": "Support", "permissions": [PermissionName.VIEW_USERS]},
        headers=headers,
    )).json()

    response = await client.put(f"/roles/{role['id']}", json={"name": "Helpdesk"}, headers=headers)

    assert response.status_code == 200, response.text
    assert response.json()["name"] == "Helpdesk"
    assert [p["name"] for p in response.json()["permissions"]] == [PermissionName.VIEW_USERS]


async def test_update_and_delete_organization(
    client, session_factory, organization_service, permissions
) -> None:
    owner = await create_user(session_factory)
    member = await create_user(session_factory)
    organization = await create_organization(session_factory)
    await organization_service.assign_owner(organization.id, owner.id)
    url = f"/organizations/{organization.id}"

    response = await client.put(url, json={"name": "Renamed Arena"}, headers=auth_headers(member))
    assert response.status_code == 403

    response = await client.put(
        url, json={"name": "Renamed Arena", "is_active": False}, headers=auth_headers(owner)
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed Arena"
    assert response.json()["is_active"] is False

    assert (await client.delete(url, headers=auth_headers(member))).status_code == 403
    assert (await client.delete(url, headers=auth_headers(owner))).status_code == 204

    assert (await client.get(url, headers=auth_headers(owner))).status_code == 404
    response = await client.get("/users/me/assignments", headers=auth_headers(owner))
    assert response.json() == []


async def test_organization_assignment_requires_assign_permission(
    client, session_factory, organization_service, role_service, assignment_service, permissions
) -> None:
    organization = await create_organization(session_factory)
    owner = await create_user(session_factory)
    designer_user = await create_user(session_factory)
    dispatcher_user = await create_user(session_factory)
    member = await create_user(session_factory)
    await organization_service.assign_owner(organization.id, owner.id)

    designer = await role_service.create_role(
        "Role Designer", PermissionScope.ORGANIZATION, organization.id, [PermissionName.MANAGE_ORGANIZATION_ROLES]
    )
    dispatcher = await role_service.create_role(
        "Dispatcher", PermissionScope.ORGANIZATION, organization.id, [PermissionName.ASSIGN_ORGANIZATION_ROLES]
    )
    await assignment_service.assign_role(designer_user.id, designer.id, PermissionScope.ORGANIZATION, organization.id)
    await assignment_service.assign_role(dispatcher_user.id, dispatcher.id, PermissionScope.ORGANIZATION, organization.id)
    url = f"/organizations/{organization.id}/users/{member.id}/assignments"

    response = await client.post(url, json={"role_id": designer.id}, headers=auth_headers(designer_user))
    assert response.status_code == 403

    response = await client.post(url, json={"role_id": designer.id}, headers=auth_headers(dispatcher_user))
    assert response.status_code == 201

    assert (await client.delete(url, headers=auth_headers(designer_user))).status_code == 403
    assert (await client.delete(url, headers=auth_headers(dispatcher_user))).status_code == 204

    owner_role = next(
        role for role in await role_service.get_roles_by_scope_instance(PermissionScope.ORGANIZATION, organization.id)
        if role.is_default
    )
    response = await client.post(url, json={"role_id": owner_role.id}, headers=auth_headers(owner))
    assert response.status_code == 403


async def test_list_users(client, session_factory, role_service, assignment_service, admin_user) -> None:
    plain = await create_user(session_factory)
    support_user = await create_user(session_factory)
    support = await role_service.create_role("Support", PermissionScope.GLOBAL, permission_names=[PermissionName.VIEW_USERS])
    await assignment_service.assign_role(support_user.id, support.id, PermissionScope.GLOBAL)

    response = await client.get("/users", headers=auth_headers(plain))
    assert response.status_code == 403

    response = await client.get("/users", headers=auth_headers(support_user))
    assert response.status_code == 200
    assert [u["id"] for u in response.json()] == [admin_user.id, plain.id, support_user.id]

    response = await client.get("/users/without-global-roles", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert [u["id"] for u in response.json()] == [plain.id]

    response = await client.get("/users", params={"limit": 0}, headers=auth_headers(admin_user))
    assert response.status_code == 400
