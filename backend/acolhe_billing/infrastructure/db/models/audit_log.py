"""
Audit Log and Webhook Delivery Models

Append-only records of processed webhooks.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from acolhe_billing.infrastructure.db.models.base import IDMixin, utcnow


class AuditLogModel(IDMixin, table=True):
    """Admin activity log entry written for every webhook."""

    __tablename__ = "admin_activity_log"

    action: str = Field(
        ...,
        sa_column=Column(String(100), nullable=False),
        description="webhook_<event_type>"
    )
    entity_type: str = Field(default="subscription", max_length=50)
    entity_id: Optional[str] = Field(default=None, max_length=36, index=True)
    details: dict = Field(
        default_factory=dict,
        sa_column=Column(JSONB, nullable=False, default=dict),
        description="gateway, event_type, processed flag, outcome"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )


class ProcessedWebhookEvent(SQLModel, table=True):
    """Gateway deliveries that were reconciled successfully."""

    __tablename__ = "processed_webhook_events"

    event_id: str = Field(primary_key=True, max_length=255)
    event_type: str = Field(max_length=100)
    processed_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
        index=True,
    )
