"""
SQLModel ORM Models for the billing webhooks service

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from acolhe_billing.infrastructure.db.models.base import (
    IDMixin,
    TimestampMixin,
)
from acolhe_billing.infrastructure.db.models.subscription import (
    PaymentModel,
    SubscriptionModel,
)
from acolhe_billing.infrastructure.db.models.profile import ProfileModel
from acolhe_billing.infrastructure.db.models.audit_log import (
    AuditLogModel,
    ProcessedWebhookEvent,
)


__all__ = [
    # Base
    "IDMixin",
    "TimestampMixin",
    # Billing
    "SubscriptionModel",
    "PaymentModel",
    "ProfileModel",
    "AuditLogModel",
    "ProcessedWebhookEvent",
]
