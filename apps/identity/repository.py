"""Identity module repository implementations."""

from typing import Optional
from sqlalchemy.orm import selectinload
from sqlmodel import func
from framework.repository.base import BaseRepository
from .models import Role, User


class RoleRepository(BaseRepository[Role]):
    """Role repository."""

    def __init__(self, session, actor: str = "System"):
        super().__init__(session, Role, actor)

    async def get_by_name(self, name: str) -> Optional[Role]:
        """Find role by name (case-insensitive)."""
        return await self._first(self._query(func.lower(Role.name) == name.lower()))

    async def get_or_create(self, name: str) -> Role:
        role = await self.get_by_name(name)
        if role is None:
            role = await self.add(Role(name=name))
        return role


class UserRepository(BaseRepository[User]):
    """User repository; roles are always loaded for token issuance."""

    def __init__(self, session, actor: str = "System"):
        super().__init__(session, User, actor)

    def _base_query(self):
        return super()._base_query().options(selectinload(User.roles))

    async def get_by_email(self, email: str) -> Optional[User]:
        """Find user by email (case-insensitive)."""
        return await self._first(self._query(func.lower(User.email) == email.lower()))

    async def is_email_unique(self, email: str, exclude_id: Optional[int] = None) -> bool:
        criteria = [func.lower(User.email) == email.lower()]
        if exclude_id is not None:
            criteria.append(User.id != exclude_id)
        return not await self._any(*criteria, include_deleted=True)

