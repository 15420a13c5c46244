"""Collections and per-user collection grants."""

import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Collection(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "collections"

    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    name: str = Field(nullable=False)


class CollectionGrant(SQLModel, table=True):
    __tablename__ = "collection_grants"

    collection_id: uuid.UUID = Field(foreign_key="collections.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)
    read_only: bool = Field(default=False, nullable=False)
