"""Base mixins for SQLModel tables."""

from datetime import datetime, timezone
import sqlalchemy as sa
from sqlmodel import Field, SQLModel
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(**column_kwargs):
    """Timezone-aware timestamp column, stamped by Python and by the database."""
    return Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now(), **column_kwargs},
        sa_type=sa.DateTime(timezone=True),
    )


class TimestampMixin(SQLModel):
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp(onupdate=utcnow)

    def touch(self) -> None:
        """Mark the row as modified even when no other column changed."""
        self.updated_at = utcnow()


class UUIDMixin(SQLModel):
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )
