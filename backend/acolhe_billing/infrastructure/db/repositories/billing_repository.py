"""
Billing Repository

Data access layer for subscriptions, payments, profile mirrors, the admin
activity log and processed webhook deliveries.
Follows Repository pattern for Clean Architecture.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from acolhe_billing.domain.interfaces import IBillingRepository
from acolhe_billing.domain.subscription import (
    AuditLogEntry,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)
from acolhe_billing.infrastructure.db.models import (
    AuditLogModel,
    PaymentModel,
    ProcessedWebhookEvent,
    ProfileModel,
    SubscriptionModel,
)
from acolhe_billing.infrastructure.db.models.base import new_id
from acolhe_billing.infrastructure.exceptions import DatabaseError


logger = logging.getLogger(__name__)


class BillingRepository(IBillingRepository):
    """
    Repository for the billing ledger.

    All operations run on the request's session; the caller's session
    context commits at the end of the request.

    Args:
        session: Async database session
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        return self._session

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """Run the enclosed writes inside a SAVEPOINT."""
        async with self._session.begin_nested():
            yield

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def get_subscription_by_professional(
        self,
        professional_id: str,
    ) -> Optional[Subscription]:
        """
        Get subscription by professional ID.

        Args:
            professional_id: Profile id of the professional

        Returns:
            Subscription domain model or None
        """
        statement = (
            select(SubscriptionModel)
            .where(SubscriptionModel.professional_id == professional_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(statement)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get_subscription_by_gateway_id(
        self,
        gateway_subscription_id: str,
    ) -> Optional[Subscription]:
        """
        Get subscription by the id the gateway assigned to it.

        Args:
            gateway_subscription_id: Gateway subscription ID

        Returns:
            Subscription domain model or None
        """
        statement = (
            select(SubscriptionModel)
            .where(SubscriptionModel.gateway_subscription_id == gateway_subscription_id)
            .order_by(SubscriptionModel.updated_at.desc())
            .limit(1)
        )
        result = await self._session.execute(statement)
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def upsert_subscription(self, subscription: Subscription) -> Subscription:
        """
        Create or update subscription by professional_id.

        Uses PostgreSQL upsert for atomicity.

        Args:
            subscription: Subscription domain model

        Returns:
            Created/updated subscription
        """
        now = datetime.now(timezone.utc)
        values = {
            "id": subscription.id or new_id(),
            "professional_id": subscription.professional_id,
            "plan": subscription.plan.value,
            "status": subscription.status.value,
            "gateway": subscription.gateway,
            "gateway_subscription_id": subscription.gateway_subscription_id,
            "gateway_customer_id": subscription.gateway_customer_id,
            "amount_cents": subscription.amount_cents,
            "current_period_start": subscription.current_period_start,
            "current_period_end": subscription.current_period_end,
            "cancel_at_period_end": subscription.cancel_at_period_end,
            "last_event_at": subscription.last_event_at,
            "created_at": now,
            "updated_at": now,
        }

        stmt = pg_insert(SubscriptionModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["professional_id"],
            set_={
                column: getattr(stmt.excluded, column)
                for column in values
                if column not in ("id", "professional_id", "created_at")
            },
        )
        await self._session.execute(stmt)

        stored = await self.get_subscription_by_professional(subscription.professional_id)
        if stored is None:
            raise DatabaseError(
                "Subscription upsert returned no row",
                operation="upsert",
                table="subscriptions",
            )
        logger.info(f"Upserted subscription {stored.id} for professional {stored.professional_id}")
        return stored

    async def update_subscription(
        self,
        subscription_id: str,
        changes: dict[str, Any],
    ) -> Optional[Subscription]:
        """
        Update selected columns of a subscription.

        Args:
            subscription_id: Subscription row id
            changes: Column name to new value (enums are stored by value)

        Returns:
            Updated subscription or None if not found
        """
        model = await self._session.get(SubscriptionModel, subscription_id)
        if not model:
            return None

        for field, value in changes.items():
            setattr(model, field, _column_value(value))
        model.updated_at = datetime.now(timezone.utc)

        await self._session.flush()
        return self._to_domain(model)

    # =========================================================================
    # Profiles
    # =========================================================================

    async def update_profile(
        self,
        professional_id: str,
        *,
        plan: Optional[SubscriptionPlan] = None,
        status: Optional[SubscriptionStatus] = None,
    ) -> None:
        values: dict[str, Any] = {}
        if plan is not None:
            values["subscription_plan"] = plan.value
        if status is not None:
            values["subscription_status"] = status.value
        if not values:
            return

        values["updated_at"] = datetime.now(timezone.utc)
        result = await self._session.execute(
            update(ProfileModel)
            .where(ProfileModel.id == professional_id)
            .values(**values)
        )
        if result.rowcount == 0:
            logger.warning(f"No profile {professional_id} to mirror subscription state into")

    # =========================================================================
    # Payments
    # =========================================================================

    async def insert_payment(self, payment: Payment) -> tuple[Payment, bool]:
        """
        Insert a payment, ignoring it if the gateway payment id is known.

        Args:
            payment: Payment domain model

        Returns:
            Stored payment and whether a new row was created
        """
        values = {
            "id": payment.id or new_id(),
            "subscription_id": payment.subscription_id,
            "professional_id": payment.professional_id,
            "amount_cents": payment.amount_cents,
            "gateway": payment.gateway,
            "gateway_payment_id": payment.gateway_payment_id,
            "payment_method": payment.payment_method,
            "status": payment.status.value,
            "paid_at": payment.paid_at,
            "created_at": datetime.now(timezone.utc),
        }

        stmt = (
            pg_insert(PaymentModel)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["gateway_payment_id"])
            .returning(PaymentModel.id)
        )
        result = await self._session.execute(stmt)
        inserted_id = result.scalar_one_or_none()

        if inserted_id is None:
            existing = await self.get_payment_by_gateway_id(payment.gateway_payment_id)
            return existing, False

        logger.info(f"Recorded payment {inserted_id} for subscription {payment.subscription_id}")
        return Payment.model_validate({**values, "id": inserted_id}), True

    async def get_payment_by_gateway_id(
        self,
        gateway_payment_id: str,
    ) -> Optional[Payment]:
        statement = select(PaymentModel).where(
            PaymentModel.gateway_payment_id == gateway_payment_id
        )
        result = await self._session.execute(statement)
        model = result.scalar_one_or_none()
        return Payment.model_validate(model) if model else None

    async def update_payment_status(
        self,
        payment_id: str,
        status: PaymentStatus,
    ) -> Optional[Payment]:
        model = await self._session.get(PaymentModel, payment_id)
        if not model:
            return None

        model.status = status.value
        await self._session.flush()
        return Payment.model_validate(model)

    # =========================================================================
    # Audit log and delivery bookkeeping
    # =========================================================================

    async def append_audit_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        model = AuditLogModel(
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            details=entry.details,
        )
        self._session.add(model)
        await self._session.flush()
        return AuditLogEntry.model_validate(model)

    async def is_event_processed(self, delivery_key: str) -> bool:
        """Check if a webhook delivery has already been processed."""
        result = await self._session.execute(
            select(ProcessedWebhookEvent.event_id).where(
                ProcessedWebhookEvent.event_id == delivery_key
            )
        )
        return result.scalar_one_or_none() is not None

    async def mark_event_processed(self, delivery_key: str, event_type: str) -> None:
        """Record a processed webhook delivery."""
        await self._session.execute(
            pg_insert(ProcessedWebhookEvent)
            .values(event_id=delivery_key, event_type=event_type)
            .on_conflict_do_nothing(index_elements=["event_id"])
        )

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=model.id,
            professional_id=model.professional_id,
            plan=SubscriptionPlan(model.plan),
            status=SubscriptionStatus(model.status),
            gateway=model.gateway,
            gateway_subscription_id=model.gateway_subscription_id,
            gateway_customer_id=model.gateway_customer_id,
            amount_cents=model.amount_cents,
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            cancel_at_period_end=model.cancel_at_period_end or False,
            last_event_at=model.last_event_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value
