"""Membership management schemas: invite, accept, confirm, edit."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from .common import CollectionGrantSpec, MembershipRole, MembershipStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class InviteRequest(BaseModel):
    """Invite one or more existing users to the org."""
    emails: List[EmailStr] = Field(min_length=1)
    role: MembershipRole = MembershipRole.USER
    access_all: bool = False
    collections: List[CollectionGrantSpec] = Field(default_factory=list)


class ConfirmRequest(BaseModel):
    """Org key re-encrypted for the invitee's public key."""
    key: str = Field(min_length=1)


class MemberEditRequest(BaseModel):
    """Replace a member's role and collection access."""
    role: MembershipRole
    access_all: bool
    collections: List[CollectionGrantSpec] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MemberGrant(BaseModel):
    collection_id: uuid.UUID
    read_only: bool


class MemberResponse(BaseModel):
    """Single membership, with the member's identity."""
    id: uuid.UUID
    user_id: uuid.UUID
    org_id: uuid.UUID
    email: str
    name: Optional[str] = None
    role: MembershipRole
    status: MembershipStatus
    access_all: bool
    created_at: datetime


class MemberDetailResponse(MemberResponse):
    """Membership plus its explicit grants (empty when access_all)."""
    collections: List[MemberGrant] = Field(default_factory=list)


class MemberListResponse(BaseModel):
    data: List[MemberResponse]


class InviteResponse(BaseModel):
    data: List[MemberResponse]
