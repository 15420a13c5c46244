"""
Organization-related Pydantic schemas shared between server and clients.

Covers: org create/update/delete requests and responses.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import MembershipRole, MembershipStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    billing_email: EmailStr
    collection_name: Optional[str] = Field(
        None,
        min_length=1,
        max_length=100,
        description="Name of the collection created with the org",
    )
    key: str = Field(
        ...,
        min_length=1,
        description="Org key encrypted for the creator (opaque)",
    )
    plan_type: Optional[str] = Field(
        None,
        description="Accepted for client compatibility; every org gets the same plan",
    )


class OrgUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    billing_email: EmailStr


class OrgDeleteRequest(BaseModel):
    password: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    billing_email: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgListItem(BaseModel):
    id: uuid.UUID
    name: str
    role: MembershipRole  # the requesting user's role in this org
    status: MembershipStatus

    model_config = {"from_attributes": True}


class OrgListResponse(BaseModel):
    data: list[OrgListItem]
