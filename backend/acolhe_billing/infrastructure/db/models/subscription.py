"""
Subscription Database Models

SQLModel tables for subscriptions and their payments.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field

from acolhe_billing.infrastructure.db.models.base import IDMixin, TimestampMixin, utcnow


class SubscriptionModel(IDMixin, TimestampMixin, table=True):
    """
    A professional's billing relationship with the platform.

    Maps to the 'subscriptions' table; one row per professional.
    """

    __tablename__ = "subscriptions"

    professional_id: str = Field(max_length=36, unique=True, index=True, nullable=False)

    plan: str = Field(default="pro", max_length=20)
    status: str = Field(default="active", max_length=20)

    # Gateway references
    gateway: Optional[str] = Field(default=None, max_length=30)
    gateway_subscription_id: Optional[str] = Field(default=None, max_length=255, index=True)
    gateway_customer_id: Optional[str] = Field(default=None, max_length=255)

    amount_cents: Optional[int] = Field(default=None)

    # Billing period
    current_period_start: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    current_period_end: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    cancel_at_period_end: bool = Field(default=False)

    # Creation time of the newest gateway event applied to this row
    last_event_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class PaymentModel(IDMixin, table=True):
    """
    A charge recorded against a subscription.

    Maps to the 'subscription_payments' table. gateway_payment_id is unique
    so re-delivered payment webhooks cannot insert duplicates.
    """

    __tablename__ = "subscription_payments"

    subscription_id: str = Field(foreign_key="subscriptions.id", max_length=36, index=True)
    professional_id: str = Field(max_length=36, index=True)
    amount_cents: Optional[int] = Field(default=None)
    gateway: str = Field(max_length=30)
    gateway_payment_id: Optional[str] = Field(default=None, max_length=255, unique=True)
    payment_method: str = Field(default="card", max_length=30)
    status: str = Field(default="approved", max_length=20)
    paid_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
