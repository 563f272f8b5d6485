"""
Read-only user listings for platform administration.
"""
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import InvalidArgumentError
from app.features.permissions.models import PermissionScope
from app.features.roles.models import UserRoleAssignment
from app.features.users.models import User


class UserService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_users(self, skip: int = 0, limit: int = 100) -> List[User]:
        return await self._list(select(User), skip, limit)

    async def list_users_without_global_role(self, skip: int = 0, limit: int = 100) -> List[User]:
        """Users that hold no GLOBAL assignment, candidates for a platform role."""
        with_global_role = select(UserRoleAssignment.user_id).where(
            UserRoleAssignment.scope == PermissionScope.GLOBAL
        )
        return await self._list(select(User).where(User.id.not_in(with_global_role)), skip, limit)

    async def _list(self, query, skip: int, limit: int) -> List[User]:
        if skip < 0 or limit < 1:
            raise InvalidArgumentError("skip must be >= 0 and limit positive")
        async with self._session_factory() as session:
            result = await session.execute(
                query.order_by(User.created_at, User.id).offset(skip).limit(limit)
            )
            return list(result.scalars().all())
