"""
Profile Database Model

Only the columns this service reads or mirrors subscription state into.
The profiles table itself is owned by the main application.
"""

from typing import Optional

from sqlmodel import Field

from acolhe_billing.infrastructure.db.models.base import IDMixin, TimestampMixin


class ProfileModel(IDMixin, TimestampMixin, table=True):
    """Professional profile with a denormalized subscription mirror."""

    __tablename__ = "profiles"

    full_name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)

    subscription_plan: str = Field(default="free", max_length=20)
    subscription_status: Optional[str] = Field(default=None, max_length=20)
