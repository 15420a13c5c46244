"""
Identity context for org-scoped requests.

Supports:
- Bearer JWT verification (tokens are issued by the identity service)
- Resolving the caller's membership, role and status in the target org
- Role-based authorization dependencies
- Password verification for destructive org operations
"""

from __future__ import annotations

import uuid
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, HTTPException
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import Forbidden, NotFound
from app.models.membership import Membership
from app.models.organization import Organization
from app.models.user import User
from vaultorg_shared.schemas.common import MembershipRole, MembershipStatus, role_at_least

log = structlog.get_logger()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password verification
# ---------------------------------------------------------------------------

def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Verify a password against the user's bcrypt hash."""
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    settings = get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class AuthenticatedMember:
    """Container for an authenticated user + their membership in one org."""

    def __init__(self, user: User, org: Organization, membership: Membership):
        self.user = user
        self.org = org
        self.membership = membership
        self.user_id = user.id
        self.org_id = org.id
        self.role = MembershipRole(membership.role)
        self.status = MembershipStatus(membership.status)


async def get_current_user(
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Authenticate the caller from a Bearer JWT whose ``sub`` is the user id."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")

    token = authorization[7:].strip()
    try:
        payload = decode_jwt(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_org_member(
    orgId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedMember:
    """Resolve the org and the caller's confirmed membership in it.

    Non-members get NotFound so org existence is not revealed.
    """
    org = await session.get(Organization, orgId)
    if not org:
        raise NotFound("Organization not found")

    result = await session.execute(
        select(Membership).where(
            Membership.user_id == user.id, Membership.org_id == org.id
        )
    )
    membership = result.scalar_one_or_none()
    if not membership:
        raise NotFound("Organization not found")

    if MembershipStatus(membership.status) != MembershipStatus.CONFIRMED:
        raise Forbidden("Membership is not confirmed")

    return AuthenticatedMember(user=user, org=org, membership=membership)


# ---------------------------------------------------------------------------
# Authorization dependencies (role checks)
# ---------------------------------------------------------------------------

async def require_admin(
    auth: AuthenticatedMember = Depends(get_org_member),
) -> AuthenticatedMember:
    """Requires admin or owner role."""
    if not role_at_least(auth.role, MembershipRole.ADMIN):
        log.info("auth.denied", user_id=str(auth.user_id), org_id=str(auth.org_id), need="admin")
        raise Forbidden("Admin access required")
    return auth


async def require_owner(
    auth: AuthenticatedMember = Depends(get_org_member),
) -> AuthenticatedMember:
    """Requires owner role."""
    if auth.role != MembershipRole.OWNER:
        log.info("auth.denied", user_id=str(auth.user_id), org_id=str(auth.org_id), need="owner")
        raise Forbidden("Owner access required")
    return auth
