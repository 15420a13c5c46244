"""
Membership service: the role/status state machine for org members.

Handles:
- Role-hierarchy authorization (who may assign or edit which role)
- The last-owner invariant on demotion and removal
- Invited -> Accepted -> Confirmed status transitions
- Member listings and details for admins

Every mutating function runs inside ``org_write_scope`` so the invariant
checks read committed state and the write lands before the next writer
for the same org is let in.
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Forbidden, InvalidInput, InvalidState, LastOwnerViolation, NotFound
from app.core.locking import org_write_scope
from app.models.membership import Membership
from app.models.organization import Organization
from app.services import collections as collection_service
from app.services.users import get_users_by_id
from vaultorg_shared.schemas.common import (
    CollectionGrantSpec,
    MEMBERSHIP_TRANSITIONS,
    MembershipRole,
    MembershipStatus,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def can_modify_role(
    actor_role: MembershipRole | str,
    target_current_role: MembershipRole | str,
    target_new_role: MembershipRole | str,
) -> bool:
    """Only owners may touch a membership that is, or would become, admin or owner."""
    actor = MembershipRole(actor_role)
    if MembershipRole(target_new_role) != MembershipRole.USER and actor != MembershipRole.OWNER:
        return False
    if MembershipRole(target_current_role) != MembershipRole.USER and actor != MembershipRole.OWNER:
        return False
    return True


async def count_confirmed_owners(org_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Membership)
        .where(
            Membership.org_id == org_id,
            Membership.role == MembershipRole.OWNER.value,
            Membership.status == MembershipStatus.CONFIRMED.value,
        )
    )
    return result.scalar_one()


async def would_violate_last_owner(
    org_id: uuid.UUID, membership: Membership, session: AsyncSession
) -> bool:
    """True if ``membership`` is an owner and the org has at most one confirmed owner.

    Callers must hold the org write scope so the count cannot change before
    their write.
    """
    if MembershipRole(membership.role) != MembershipRole.OWNER:
        return False
    return await count_confirmed_owners(org_id, session) <= 1


def _check_transition(membership: Membership, target: MembershipStatus) -> None:
    current = MembershipStatus(membership.status)
    if target not in MEMBERSHIP_TRANSITIONS[current]:
        raise InvalidState(f"Membership in invalid state '{current.value}'")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_membership(
    org_id: uuid.UUID,
    membership_id: uuid.UUID,
    session: AsyncSession,
    *,
    fresh: bool = False,
) -> Membership:
    """Get a membership of this org; NotFound if absent or in another org."""
    stmt = select(Membership).where(Membership.id == membership_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    membership = result.scalar_one_or_none()
    if not membership or membership.org_id != org_id:
        raise NotFound("User isn't member of the organization")
    return membership


async def find_membership(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> Optional[Membership]:
    result = await session.execute(
        select(Membership).where(
            Membership.user_id == user_id, Membership.org_id == org_id
        )
    )
    return result.scalar_one_or_none()


async def list_memberships(org_id: uuid.UUID, session: AsyncSession) -> list[Membership]:
    result = await session.execute(
        select(Membership)
        .where(Membership.org_id == org_id)
        .order_by(Membership.created_at, Membership.id)
    )
    return list(result.scalars().all())


def _member_info(membership: Membership, user) -> dict:
    return {
        "id": membership.id,
        "user_id": membership.user_id,
        "org_id": membership.org_id,
        "email": user.email if user else "",
        "name": user.name if user else None,
        "role": membership.role,
        "status": membership.status,
        "access_all": membership.access_all,
        "created_at": membership.created_at,
    }


async def describe_members(
    memberships: Sequence[Membership], session: AsyncSession
) -> list[dict]:
    """Membership rows joined with the member's identity, in input order."""
    users = await get_users_by_id([m.user_id for m in memberships], session)
    return [_member_info(m, users.get(m.user_id)) for m in memberships]


async def list_org_members(org_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """List all members of an org with their membership info."""
    return await describe_members(await list_memberships(org_id, session), session)


async def get_member_details(
    org_id: uuid.UUID, membership_id: uuid.UUID, session: AsyncSession
) -> dict:
    """One member plus their explicit grants (none listed when access_all)."""
    membership = await get_membership(org_id, membership_id, session)
    info = (await describe_members([membership], session))[0]
    grants = []
    if not membership.access_all:
        grants = await collection_service.list_user_grants(org_id, membership.user_id, session)
    info["collections"] = [
        {"collection_id": g.collection_id, "read_only": g.read_only} for g in grants
    ]
    return info


async def list_user_organizations(user_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """List every org a user has a membership in, with role and status."""
    result = await session.execute(
        select(Organization, Membership)
        .join(Membership, Membership.org_id == Organization.id)
        .where(Membership.user_id == user_id)
        .order_by(Organization.name)
    )
    return [
        {
            "id": org.id,
            "name": org.name,
            "role": membership.role,
            "status": membership.status,
        }
        for org, membership in result.all()
    ]


# ---------------------------------------------------------------------------
# State changes
# ---------------------------------------------------------------------------


async def _apply_role(
    org_id: uuid.UUID,
    membership: Membership,
    new_role: MembershipRole,
    actor_role: MembershipRole,
    session: AsyncSession,
) -> None:
    if not can_modify_role(actor_role, membership.role, new_role):
        raise Forbidden("Only Owners can grant or edit Admin or Owner roles")

    if new_role != MembershipRole.OWNER and await would_violate_last_owner(
        org_id, membership, session
    ):
        log.warning(
            "member.last_owner_blocked",
            membership_id=str(membership.id),
            org_id=str(org_id),
            new_role=new_role.value,
        )
        raise LastOwnerViolation()

    membership.role = new_role.value
    session.add(membership)
    await session.flush()


async def set_role(
    org_id: uuid.UUID,
    membership_id: uuid.UUID,
    new_role: MembershipRole,
    actor_role: MembershipRole,
    session: AsyncSession,
) -> Membership:
    """Change a member's role."""
    new_role = MembershipRole(new_role)
    async with org_write_scope(session, org_id, "set_role"):
        membership = await get_membership(org_id, membership_id, session, fresh=True)
        previous = membership.role
        await _apply_role(org_id, membership, new_role, MembershipRole(actor_role), session)

    log.info(
        "member.role_changed",
        membership_id=str(membership_id),
        org_id=str(org_id),
        previous=previous,
        role=new_role.value,
    )
    return membership


async def edit_member(
    org_id: uuid.UUID,
    membership_id: uuid.UUID,
    new_role: MembershipRole,
    access_all: bool,
    grants: Sequence[CollectionGrantSpec],
    actor_role: MembershipRole,
    session: AsyncSession,
) -> Membership:
    """Replace a member's role, access_all flag and explicit grants in one step."""
    new_role = MembershipRole(new_role)
    async with org_write_scope(session, org_id, "edit_member"):
        membership = await get_membership(org_id, membership_id, session, fresh=True)
        await _apply_role(org_id, membership, new_role, MembershipRole(actor_role), session)
        membership.access_all = access_all
        session.add(membership)
        await session.flush()
        await collection_service.apply_grants(org_id, membership, grants, session)

    log.info(
        "member.updated",
        membership_id=str(membership_id),
        org_id=str(org_id),
        role=new_role.value,
        access_all=access_all,
    )
    return membership


async def remove_member(
    org_id: uuid.UUID,
    membership_id: uuid.UUID,
    actor_role: MembershipRole,
    session: AsyncSession,
) -> None:
    """Remove a member and every grant they hold in this org."""
    async with org_write_scope(session, org_id, "remove_member"):
        membership = await get_membership(org_id, membership_id, session, fresh=True)
        if not can_modify_role(actor_role, membership.role, membership.role):
            raise Forbidden("Only Owners can remove Admins or Owners")

        if await would_violate_last_owner(org_id, membership, session):
            log.warning(
                "member.last_owner_blocked",
                membership_id=str(membership.id),
                org_id=str(org_id),
            )
            raise LastOwnerViolation()

        await collection_service.delete_user_grants(org_id, membership.user_id, session)
        await session.delete(membership)
        await session.flush()

    log.info("member.removed", membership_id=str(membership_id), org_id=str(org_id))


async def accept_invitation(
    org_id: uuid.UUID,
    membership_id: uuid.UUID,
    user_id: uuid.UUID,
    session: AsyncSession,
) -> Membership:
    """Invitee accepts: Invited -> Accepted. Only the invited user may accept."""
    async with org_write_scope(session, org_id, "accept_invitation"):
        membership = await get_membership(org_id, membership_id, session, fresh=True)
        if membership.user_id != user_id:
            raise NotFound("Invitation not found")
        _check_transition(membership, MembershipStatus.ACCEPTED)
        membership.status = MembershipStatus.ACCEPTED.value
        session.add(membership)
        await session.flush()

    log.info("member.accepted", membership_id=str(membership_id), org_id=str(org_id))
    return membership


async def confirm_member(
    org_id: uuid.UUID,
    membership_id: uuid.UUID,
    key: Optional[str],
    actor_role: MembershipRole,
    session: AsyncSession,
) -> Membership:
    """Admin/owner confirms an accepted member, storing the re-encrypted org key."""
    async with org_write_scope(session, org_id, "confirm_member"):
        membership = await get_membership(org_id, membership_id, session, fresh=True)
        if not can_modify_role(actor_role, membership.role, membership.role):
            raise Forbidden("Only Owners can confirm Admins or Owners")
        _check_transition(membership, MembershipStatus.CONFIRMED)
        if not key or not key.strip():
            raise InvalidInput("Invalid key provided")

        membership.status = MembershipStatus.CONFIRMED.value
        membership.key = key
        session.add(membership)
        await session.flush()

    log.info("member.confirmed", membership_id=str(membership_id), org_id=str(org_id))
    return membership
