"""User-Organization membership: role, invitation status and collection scope."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Membership(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "memberships"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "org_id", name="uq_memberships_user_org"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    role: str = Field(nullable=False, default="user")  # user | admin | owner
    status: str = Field(nullable=False, default="invited")  # invited | accepted | confirmed
    access_all: bool = Field(default=False, nullable=False)
    key: Optional[str] = None  # org key encrypted for this member, set on confirm
