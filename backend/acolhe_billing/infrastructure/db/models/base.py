"""
Base Model for SQLModel ORM

Provides common fields and behavior for the billing tables.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class TimestampMixin(SQLModel):
    """
    Mixin providing timestamp fields for models.
    """

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
        description="Record creation timestamp (UTC)"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
        sa_column_kwargs={"onupdate": utcnow},
        description="Last update timestamp (UTC)"
    )


class IDMixin(SQLModel):
    """
    Mixin providing a string UUID primary key, matching Supabase row ids.
    """

    id: str = Field(
        default_factory=new_id,
        primary_key=True,
        max_length=36,
        description="Unique identifier (UUID v4)"
    )
