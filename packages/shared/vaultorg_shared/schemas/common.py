from enum import Enum
import uuid

from pydantic import BaseModel


class MembershipRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    OWNER = "owner"


class MembershipStatus(str, Enum):
    INVITED = "invited"
    ACCEPTED = "accepted"
    CONFIRMED = "confirmed"


# Privilege order, lowest first
ROLE_RANK: dict[MembershipRole, int] = {
    MembershipRole.USER: 0,
    MembershipRole.ADMIN: 1,
    MembershipRole.OWNER: 2,
}

# Valid membership status transitions. Removal deletes the row.
MEMBERSHIP_TRANSITIONS: dict[MembershipStatus, list[MembershipStatus]] = {
    MembershipStatus.INVITED: [MembershipStatus.ACCEPTED],
    MembershipStatus.ACCEPTED: [MembershipStatus.CONFIRMED],
    MembershipStatus.CONFIRMED: [],
}


def role_at_least(role: MembershipRole | str, minimum: MembershipRole) -> bool:
    return ROLE_RANK[MembershipRole(role)] >= ROLE_RANK[minimum]


class CollectionGrantSpec(BaseModel):
    """One entry of a member's explicit collection assignment."""
    collection_id: uuid.UUID
    read_only: bool = False


class APIError(BaseModel):
    code: str
    message: str
    status: int


class APIErrorResponse(BaseModel):
    error: APIError
