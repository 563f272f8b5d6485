"""
Shared pytest fixtures available to every test file automatically.

Each test gets its own file-backed SQLite database with the schema
created from the models and the permission catalog seeded.
"""
from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.database.engine import build_engine, build_sessionmaker, get_db, init_db
from app.features.organizations.dependencies import get_organization_service
from app.features.organizations.service import OrganizationService
from app.features.permissions.dependencies import (
    get_audit_log_service,
    get_authorization_service,
    get_permission_catalog,
)
from app.features.permissions.service import (
    AuditLogService,
    AuthorizationService,
    PermissionCatalog,
)
from app.features.roles.dependencies import get_role_assignment_service, get_role_service
from app.features.roles.service import RoleAssignmentService, RoleService
from app.features.users.dependencies import get_user_service
from app.features.users.service import UserService
from app.main import create_app
from scripts.seed_permissions import seed_admin_role, seed_admin_user, seed_permissions

from .factories import ADMIN_EMAIL

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
async def engine(tmp_path):
    async_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rbac.db'}")
    await init_db(async_engine)
    yield async_engine
    await async_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture()
async def permissions(session_factory):
    """Seeded permission catalog, keyed by name, plus the global Admin role."""
    async with session_factory.begin() as session:
        permissions_map = await seed_permissions(session)
        await seed_admin_role(session, permissions_map)
    return permissions_map


@pytest.fixture()
async def admin_user(session_factory, permissions):
    # Catalog rows are reloaded so they belong to this session
    async with session_factory.begin() as session:
        role = await seed_admin_role(session, await seed_permissions(session))
        return await seed_admin_user(session, role, ADMIN_EMAIL, name="Platform Admin")


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def catalog(session_factory):
    return PermissionCatalog(session_factory)


@pytest.fixture()
def authorization(session_factory):
    return AuthorizationService(session_factory)


@pytest.fixture()
def audit(session_factory):
    return AuditLogService(session_factory)


@pytest.fixture()
def role_service(session_factory, catalog):
    return RoleService(session_factory, catalog)


@pytest.fixture()
def assignment_service(session_factory):
    return RoleAssignmentService(session_factory)


@pytest.fixture()
def organization_service(session_factory, catalog, assignment_service):
    return OrganizationService(session_factory, catalog, assignment_service)


@pytest.fixture()
def user_service(session_factory):
    return UserService(session_factory)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture()
def app(
    session_factory,
    catalog,
    authorization,
    audit,
    role_service,
    assignment_service,
    organization_service,
    user_service,
):
    """Full application wired to the per-test database."""
    app = create_app()

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_permission_catalog] = lambda: catalog
    app.dependency_overrides[get_authorization_service] = lambda: authorization
    app.dependency_overrides[get_audit_log_service] = lambda: audit
    app.dependency_overrides[get_role_service] = lambda: role_service
    app.dependency_overrides[get_role_assignment_service] = lambda: assignment_service
    app.dependency_overrides[get_organization_service] = lambda: organization_service
    app.dependency_overrides[get_user_service] = lambda: user_service
    return app


@pytest.fixture()
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
