from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import UserEntity
from src.infrastructure.persistence.models.user import User
from src.infrastructure.persistence.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for resolving users by email."""

    def __init__(self, db: AsyncSession, *, autocommit: bool = True):
        super().__init__(db, User, autocommit=autocommit)

    async def find_users_by_emails(self, emails: Sequence[str]) -> list[UserEntity]:
        lowered = sorted({email.strip().lower() for email in emails if email and email.strip()})
        if not lowered:
            return []
        result = await self._execute(
            "find_users_by_emails",
            select(User).where(func.lower(User.email).in_(lowered)),
        )
        return [UserEntity(id=row.id, email=row.email) for row in result.scalars().all()]
