"""
User directory lookups. Users are owned by the identity service; this module
only resolves them for invitations and membership listings.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    """Resolve an email to a registered user, or None."""
    result = await session.execute(
        select(User).where(User.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_users_by_id(
    user_ids: list[uuid.UUID], session: AsyncSession
) -> dict[uuid.UUID, User]:
    if not user_ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(user_ids)))
    return {user.id: user for user in result.scalars().all()}
