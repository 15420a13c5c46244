"""
Script to register a user with a password for local testing.

Users normally come from the identity service; this fills the users table so
invitations have someone to resolve against. Prints a bearer token for the user.
"""

import argparse
import asyncio
from typing import Optional

import bcrypt
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session_context, init_db
from app.models.user import User
from app.services.users import find_user_by_email, normalize_email


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def issue_local_token(user: User) -> str:
    settings = get_settings()
    return jwt.encode({"sub": str(user.id)}, settings.secret_key, algorithm=settings.jwt_algorithm)


async def ensure_user(
    email: str, password: str, name: Optional[str], session: AsyncSession
) -> tuple[User, bool]:
    """Return the user for ``email``, creating it if needed. Second item is True when created."""
    user = await find_user_by_email(email, session)
    if user:
        return user, False

    user = User(
        email=normalize_email(email),
        name=name,
        password_hash=get_password_hash(password),
    )
    session.add(user)
    await session.flush()
    return user, True


async def create_user(email: str, password: str, name: Optional[str]):
    await init_db()
    async with get_session_context() as session:
        user, created = await ensure_user(email, password, name, session)
        if created:
            print(f"Created user: {user.email}")
        else:
            print(f"User {user.email} already exists.")
    print(f"Token: {issue_local_token(user)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--name", default=None, help="Display name")

    args = parser.parse_args()

    asyncio.run(create_user(args.email, args.password, args.name))
