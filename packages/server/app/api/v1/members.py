"""
Membership API endpoints.

GET    /api/v1/orgs/{orgId}/members                       List members (Admin)
POST   /api/v1/orgs/{orgId}/members/invite                Invite users by email (Admin)
GET    /api/v1/orgs/{orgId}/members/{memberId}            Member details (Admin)
PATCH  /api/v1/orgs/{orgId}/members/{memberId}            Edit role and collections (Admin)
DELETE /api/v1/orgs/{orgId}/members/{memberId}            Remove member (Admin)
POST   /api/v1/orgs/{orgId}/members/{memberId}/accept     Invitee accepts
POST   /api/v1/orgs/{orgId}/members/{memberId}/confirm    Confirm with org key (Admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedMember, get_current_user, require_admin
from app.core.database import get_session
from app.models.user import User
from app.services import invitations as invitation_service
from app.services import memberships as membership_service
from vaultorg_shared.schemas.members import (
    ConfirmRequest,
    InviteRequest,
    InviteResponse,
    MemberDetailResponse,
    MemberEditRequest,
    MemberListResponse,
    MemberResponse,
)

router = APIRouter()


async def _member_response(membership, session: AsyncSession) -> MemberResponse:
    info = (await membership_service.describe_members([membership], session))[0]
    return MemberResponse(**info)


@router.get("", response_model=MemberListResponse, tags=["Members"])
async def list_members(
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """List all members of the org."""
    items = await membership_service.list_org_members(auth.org_id, session)
    return MemberListResponse(data=[MemberResponse(**item) for item in items])


@router.post("/invite", response_model=InviteResponse, status_code=201, tags=["Members"])
async def invite_members(
    body: InviteRequest,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Invite registered users (Admin; only Owners may invite Admins or Owners)."""
    created = await invitation_service.invite_members(
        auth.org_id,
        [str(email) for email in body.emails],
        body.role,
        body.access_all,
        body.collections,
        actor_role=auth.role,
        session=session,
    )
    items = await membership_service.describe_members(created, session)
    return InviteResponse(data=[MemberResponse(**item) for item in items])


@router.get("/{memberId}", response_model=MemberDetailResponse, tags=["Members"])
async def get_member(
    memberId: uuid.UUID,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Get one member with their explicit collection grants."""
    info = await membership_service.get_member_details(auth.org_id, memberId, session)
    return MemberDetailResponse(**info)


@router.patch("/{memberId}", response_model=MemberDetailResponse, tags=["Members"])
async def edit_member(
    memberId: uuid.UUID,
    body: MemberEditRequest,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Replace a member's role, access_all flag and collection grants."""
    await membership_service.edit_member(
        auth.org_id,
        memberId,
        body.role,
        body.access_all,
        body.collections,
        actor_role=auth.role,
        session=session,
    )
    info = await membership_service.get_member_details(auth.org_id, memberId, session)
    return MemberDetailResponse(**info)


@router.delete("/{memberId}", status_code=204, tags=["Members"])
async def remove_member(
    memberId: uuid.UUID,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Remove a member and their grants. The last owner can't be removed."""
    await membership_service.remove_member(auth.org_id, memberId, auth.role, session)


@router.post("/{memberId}/accept", response_model=MemberResponse, tags=["Members"])
async def accept_invitation(
    orgId: uuid.UUID,
    memberId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """The invited user accepts their invitation."""
    membership = await membership_service.accept_invitation(orgId, memberId, user.id, session)
    return await _member_response(membership, session)


@router.post("/{memberId}/confirm", response_model=MemberResponse, tags=["Members"])
async def confirm_member(
    memberId: uuid.UUID,
    body: ConfirmRequest,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Confirm an accepted member, storing the org key encrypted for them."""
    membership = await membership_service.confirm_member(
        auth.org_id, memberId, body.key, auth.role, session
    )
    return await _member_response(membership, session)
