"""
Seed script to populate the permission catalog and the platform admin role.

Run this script after database initialization to create:
- Default permissions for every scope
- The default global "Admin" role holding every GLOBAL permission
- Optionally, an admin user holding that role

Usage:
    python -m scripts.seed_permissions [--admin-email admin@example.com]
"""
import argparse
import asyncio
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.permissions.constants import PERMISSION_DEFINITIONS, PLATFORM_ADMIN_ROLE
from app.features.permissions.models import Permission, PermissionScope
from app.features.roles.models import Role, UserRoleAssignment
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create default permissions, keeping existing rows in sync.
    
    Returns:
        Dictionary mapping permission names to Permission objects
    """
    log.info("Creating default permissions...")
    result = await db.execute(select(Permission))
    permissions_map = {permission.name: permission for permission in result.scalars().all()}
    
    created = 0
    for name, (scope, description) in PERMISSION_DEFINITIONS.items():
        existing = permissions_map.get(name)
        if existing:
            if existing.scope != scope:
                log.warning(f"Permission '{name}' has scope {existing.scope.value}, expected {scope.value}")
            existing.description = description
            continue
        
        permission = Permission(name=name, scope=scope, description=description)
        db.add(permission)
        permissions_map[name] = permission
        created += 1
        log.info(f"Created permission: {name} ({scope.value})")
    
    await db.flush()
    log.info(f"Created {created} permissions, {len(permissions_map)} in catalog")
    return permissions_map


async def seed_admin_role(db: AsyncSession, permissions_map: dict[str, Permission]) -> Role:
    """Create the default global admin role, granting every GLOBAL permission."""
    global_permissions = sorted(
        (permission for permission in permissions_map.values() if permission.scope is PermissionScope.GLOBAL),
        key=lambda permission: permission.name,
    )
    
    result = await db.execute(
        select(Role).where(Role.name == PLATFORM_ADMIN_ROLE, Role.scope == PermissionScope.GLOBAL)
    )
    role = result.scalar_one_or_none()
    
    if role is None:
        role = Role(name=PLATFORM_ADMIN_ROLE, scope=PermissionScope.GLOBAL, is_default=True)
        db.add(role)
        log.info(f"Created role '{PLATFORM_ADMIN_ROLE}' with {len(global_permissions)} permissions")
    else:
        log.debug(f"Role '{PLATFORM_ADMIN_ROLE}' already exists, syncing permissions")
    
    role.permissions = global_permissions
    await db.flush()
    return role


async def seed_admin_user(db: AsyncSession, role: Role, email: str, name: Optional[str] = None) -> User:
    """Give the admin role to the user with ``email``, creating the user if needed."""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(email=email, name=name or email.split("@")[0])
        db.add(user)
        await db.flush()
        log.info(f"Created admin user {email}")
    
    result = await db.execute(
        select(UserRoleAssignment).where(
            UserRoleAssignment.user_id == user.id,
            UserRoleAssignment.scope_key == role.scope_key,
        )
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        db.add(UserRoleAssignment.for_role(user.id, role))
        await db.flush()
        log.info(f"Assigned '{role.name}' to {email}")
    elif assignment.role_id != role.id:
        log.warning(f"{email} already holds another global role, leaving it in place")
    
    return user


async def main(admin_email: Optional[str] = None):
    """Main function to seed permissions and the admin role."""
    log.info("Starting permission seeding...")
    
    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()
    
    async with AsyncSessionLocal.begin() as db:
        permissions_map = await seed_permissions(db)
        role = await seed_admin_role(db, permissions_map)
        if admin_email:
            await seed_admin_user(db, role, admin_email)
    
    log.info("Permission seeding completed successfully!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the permission catalog and admin role")
    parser.add_argument("--admin-email", help="Email of the user who receives the Admin role")
    args = parser.parse_args()
    asyncio.run(main(args.admin_email))
