"""
Repository Layer for the billing webhooks service

Exports all repository classes for dependency injection.
"""

from acolhe_billing.infrastructure.db.repositories.billing_repository import (
    BillingRepository,
)


__all__ = [
    "BillingRepository",
]
