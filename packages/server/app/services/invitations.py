"""
Invitation service: first half of the invite/confirm handshake.

An invite creates memberships in the Invited state with no org key. The
invitee accepts out of band; an admin or owner then confirms with the org key
re-encrypted for the invitee (see ``memberships.confirm_member``). Until then
the invitee sees nothing of the org.
"""

from __future__ import annotations

import uuid
from typing import Sequence

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AlreadyMember, Forbidden, InvalidInput, NotFound
from app.core.locking import org_write_scope
from app.models.membership import Membership
from app.services import collections as collection_service
from app.services.memberships import find_membership
from app.services.users import find_user_by_email
from vaultorg_shared.schemas.common import (
    CollectionGrantSpec,
    MembershipRole,
    MembershipStatus,
)

log = structlog.get_logger()


async def invite_members(
    org_id: uuid.UUID,
    emails: Sequence[str],
    role: MembershipRole,
    access_all: bool,
    grants: Sequence[CollectionGrantSpec],
    actor_role: MembershipRole,
    session: AsyncSession,
) -> list[Membership]:
    """Invite existing users by email. All invites are created, or none.

    Fails on the first unresolved email (NotFound), existing member
    (AlreadyMember) or foreign collection (NotFound).
    """
    role = MembershipRole(role)
    if not emails:
        raise InvalidInput("At least one email is required")
    if role != MembershipRole.USER and MembershipRole(actor_role) != MembershipRole.OWNER:
        raise Forbidden("Only Owners can invite Admins or Owners")

    created: list[Membership] = []
    async with org_write_scope(session, org_id, "invite_members"):
        for email in emails:
            user = await find_user_by_email(email, session)
            if not user:
                raise NotFound(f"User email {email} does not exist")

            if await find_membership(user.id, org_id, session):
                raise AlreadyMember(email)

            membership = Membership(
                user_id=user.id,
                org_id=org_id,
                role=role.value,
                status=MembershipStatus.INVITED.value,
                access_all=access_all,
            )
            session.add(membership)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise AlreadyMember(email) from exc

            if not access_all:
                await collection_service.apply_grants(org_id, membership, grants, session)
            created.append(membership)

    for membership in created:
        log.info(
            "member.invited",
            membership_id=str(membership.id),
            user_id=str(membership.user_id),
            org_id=str(org_id),
            role=role.value,
            access_all=access_all,
        )
    return created
