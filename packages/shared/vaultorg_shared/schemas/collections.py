"""Collection schemas."""

from __future__ import annotations

import uuid
from typing import List

from pydantic import BaseModel, Field

from .common import MembershipRole, MembershipStatus


class CollectionCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class CollectionUpdateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class CollectionResponse(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}


class CollectionListResponse(BaseModel):
    data: List[CollectionResponse]


class CollectionAccessResponse(CollectionResponse):
    """A collection as seen by one member."""
    read_only: bool


class CollectionAccessListResponse(BaseModel):
    data: List[CollectionAccessResponse]


class CollectionUserResponse(BaseModel):
    membership_id: uuid.UUID
    user_id: uuid.UUID
    role: MembershipRole
    status: MembershipStatus
    access_all: bool
    read_only: bool


class CollectionUserListResponse(BaseModel):
    data: List[CollectionUserResponse]
