"""
Billing persistence port

Abstract repository the reconciler and processor depend on. The SQL
implementation lives in the infrastructure layer; tests use an in-memory one.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Optional

from acolhe_billing.domain.subscription import (
    AuditLogEntry,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)


class IBillingRepository(ABC):
    """Operations over subscriptions, payments, profiles and the audit log."""

    @abstractmethod
    def atomic(self) -> AsyncContextManager[None]:
        """
        Group writes so they are rolled back together on error.

        Writes made outside an atomic block (audit entries) are unaffected.
        """

    # Subscriptions

    @abstractmethod
    async def get_subscription_by_professional(
        self, professional_id: str
    ) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def get_subscription_by_gateway_id(
        self, gateway_subscription_id: str
    ) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def upsert_subscription(self, subscription: Subscription) -> Subscription:
        """Create or replace the subscription row keyed by professional id."""

    @abstractmethod
    async def update_subscription(
        self, subscription_id: str, changes: dict[str, Any]
    ) -> Optional[Subscription]:
        pass

    # Profiles

    @abstractmethod
    async def update_profile(
        self,
        professional_id: str,
        *,
        plan: Optional[SubscriptionPlan] = None,
        status: Optional[SubscriptionStatus] = None,
    ) -> None:
        """Mirror plan and/or status into the professional's profile."""

    # Payments

    @abstractmethod
    async def insert_payment(self, payment: Payment) -> tuple[Payment, bool]:
        """
        Insert a payment unless one with the same gateway payment id exists.

        Returns:
            The stored payment and whether it was newly created
        """

    @abstractmethod
    async def get_payment_by_gateway_id(
        self, gateway_payment_id: str
    ) -> Optional[Payment]:
        pass

    @abstractmethod
    async def update_payment_status(
        self, payment_id: str, status: PaymentStatus
    ) -> Optional[Payment]:
        pass

    # Audit log and delivery bookkeeping

    @abstractmethod
    async def append_audit_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        pass

    @abstractmethod
    async def is_event_processed(self, delivery_key: str) -> bool:
        pass

    @abstractmethod
    async def mark_event_processed(self, delivery_key: str, event_type: str) -> None:
        pass
