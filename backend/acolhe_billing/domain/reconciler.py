"""
Subscription Reconciler

State machine applying canonical billing events to the subscription,
payment and profile ledger.

Event effects:
- subscription_created / checkout_completed: upsert subscription by professional
- subscription_updated / subscription_renewed: sync status, period end, cancel flag
- subscription_cancelled: cancel subscription, downgrade profile to free
- payment_succeeded: record payment (deduplicated), reactivate subscription
- payment_failed / payment_overdue: set subscription to past_due
- payment_refunded: mark recorded payment as refunded
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from acolhe_billing.domain.interfaces import IBillingRepository
from acolhe_billing.domain.status_mapper import map_status
from acolhe_billing.domain.subscription import (
    CanonicalEvent,
    CanonicalEventType,
    Payment,
    PaymentStatus,
    ReconciliationOutcome,
    ReconciliationResult,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)
from acolhe_billing.infrastructure.exceptions import ReconciliationError


logger = logging.getLogger(__name__)


PAYMENT_METHOD_ALIASES = {
    "credit_card": "card",
    "debit_card": "card",
    "creditcard": "card",
}


@dataclass
class _Resolution:
    """Mutable record of what a handler resolved, kept even if it fails midway."""
    outcome: ReconciliationOutcome = ReconciliationOutcome.APPLIED
    subscription_id: Optional[str] = None


Handler = Callable[[CanonicalEvent, _Resolution], Awaitable[None]]


class SubscriptionReconciler:
    """
    Applies canonical events to the billing ledger.

    Subscription state carries the timestamp of the newest event applied to
    it; older events do not overwrite it. Cancellation is terminal and is
    always applied.
    """

    def __init__(
        self,
        repository: IBillingRepository,
        default_plan: SubscriptionPlan = SubscriptionPlan.PRO,
        status_fallback: SubscriptionStatus = SubscriptionStatus.PAST_DUE,
    ):
        self._repo = repository
        self._default_plan = default_plan
        self._status_fallback = status_fallback
        self._handlers: dict[CanonicalEventType, Handler] = {
            CanonicalEventType.SUBSCRIPTION_CREATED: self._handle_subscription_created,
            CanonicalEventType.CHECKOUT_COMPLETED: self._handle_subscription_created,
            CanonicalEventType.SUBSCRIPTION_UPDATED: self._handle_subscription_updated,
            CanonicalEventType.SUBSCRIPTION_RENEWED: self._handle_subscription_updated,
            CanonicalEventType.SUBSCRIPTION_CANCELLED: self._handle_subscription_cancelled,
            CanonicalEventType.PAYMENT_SUCCEEDED: self._handle_payment_succeeded,
            CanonicalEventType.PAYMENT_FAILED: self._handle_payment_failed,
            CanonicalEventType.PAYMENT_OVERDUE: self._handle_payment_failed,
            CanonicalEventType.PAYMENT_REFUNDED: self._handle_payment_refunded,
        }

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def apply(self, event: CanonicalEvent) -> ReconciliationResult:
        """
        Apply one event. Errors are caught and reported in the result.

        All writes of a single event are rolled back together on failure.
        """
        handler = self._handlers.get(event.canonical_type)
        if handler is None:
            logger.info(f"Unhandled event type: {event.event_type} ({event.gateway})")
            return ReconciliationResult(
                success=True,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.IGNORED,
            )

        resolution = _Resolution()
        try:
            async with self._repo.atomic():
                await handler(event, resolution)
        except Exception as e:
            logger.error(f"Error processing {event.event_type} from {event.gateway}: {e}")
            return ReconciliationResult(
                success=False,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.FAILED,
                subscription_id=resolution.subscription_id,
                error=str(e),
            )

        return ReconciliationResult(
            success=True,
            event_type=event.event_type,
            outcome=resolution.outcome,
            subscription_id=resolution.subscription_id,
        )

    # =========================================================================
    # Event Handlers
    # =========================================================================

    async def _handle_subscription_created(
        self, event: CanonicalEvent, resolution: _Resolution
    ) -> None:
        data = event.data
        professional_id = data.professional_id
        if not professional_id:
            logger.warning(
                f"{event.event_type} from {event.gateway} has no professional reference"
            )
            resolution.outcome = ReconciliationOutcome.MISSING_PROFESSIONAL
            return

        existing = await self._repo.get_subscription_by_professional(professional_id)
        if existing:
            resolution.subscription_id = existing.id
            if self._is_stale(existing, event):
                resolution.outcome = ReconciliationOutcome.STALE
                return

        plan = self._resolve_plan(data.metadata.get("plan"))
        subscription = Subscription(
            id=existing.id if existing else None,
            professional_id=professional_id,
            plan=plan,
            status=SubscriptionStatus.ACTIVE,
            gateway=event.gateway,
            gateway_subscription_id=data.subscription_id,
            gateway_customer_id=data.customer_id,
            amount_cents=data.amount,
            current_period_start=data.current_period_start or self._now(),
            current_period_end=data.current_period_end,
            cancel_at_period_end=bool(data.cancel_at_period_end),
            last_event_at=self._latest_event_at(existing, event),
        )
        stored = await self._repo.upsert_subscription(subscription)
        resolution.subscription_id = stored.id

        await self._repo.update_profile(
            professional_id, plan=plan, status=SubscriptionStatus.ACTIVE
        )
        logger.info(f"Activated {plan.value} subscription for professional {professional_id}")

    async def _handle_subscription_updated(
        self, event: CanonicalEvent, resolution: _Resolution
    ) -> None:
        existing = await self._find_subscription(event, resolution)
        if existing is None:
            return
        if self._is_stale(existing, event):
            resolution.outcome = ReconciliationOutcome.STALE
            return

        data = event.data
        status = map_status(data.status, self._status_fallback)
        changes = {
            "cancel_at_period_end": bool(data.cancel_at_period_end),
            "last_event_at": self._latest_event_at(existing, event),
        }
        if status is not None:
            changes["status"] = status
        if data.current_period_end is not None:
            changes["current_period_end"] = data.current_period_end

        await self._update_subscription(event, existing.id, changes)
        if status is not None:
            await self._repo.update_profile(existing.professional_id, status=status)
        logger.info(f"Synced subscription {existing.id} (status={data.status})")

    async def _handle_subscription_cancelled(
        self, event: CanonicalEvent, resolution: _Resolution
    ) -> None:
        existing = await self._find_subscription(event, resolution)
        if existing is None:
            return

        await self._update_subscription(
            event,
            existing.id,
            {
                "status": SubscriptionStatus.CANCELLED,
                "last_event_at": self._latest_event_at(existing, event),
            },
        )
        await self._repo.update_profile(
            existing.professional_id,
            plan=SubscriptionPlan.FREE,
            status=SubscriptionStatus.CANCELLED,
        )
        logger.info(f"Cancelled subscription {existing.id}, profile downgraded to free")

    async def _handle_payment_succeeded(
        self, event: CanonicalEvent, resolution: _Resolution
    ) -> None:
        existing = await self._find_subscription(event, resolution)
        if existing is None:
            return

        data = event.data
        if not data.payment_id:
            logger.warning(
                f"Payment from {event.gateway} for subscription {existing.id} "
                "has no gateway payment id, cannot deduplicate"
            )
        payment, created = await self._repo.insert_payment(
            Payment(
                subscription_id=existing.id,
                professional_id=existing.professional_id,
                amount_cents=data.amount,
                gateway=event.gateway,
                gateway_payment_id=data.payment_id,
                payment_method=self._payment_method(data.billing_type),
                status=PaymentStatus.APPROVED,
                paid_at=self._now(),
            )
        )
        if not created:
            logger.info(f"Payment {payment.gateway_payment_id} already recorded, skipping insert")

        if self._is_stale(existing, event):
            resolution.outcome = ReconciliationOutcome.STALE
            return

        await self._update_subscription(
            event,
            existing.id,
            {
                "status": SubscriptionStatus.ACTIVE,
                "last_event_at": self._latest_event_at(existing, event),
            },
        )
        await self._repo.update_profile(
            existing.professional_id, status=SubscriptionStatus.ACTIVE
        )

    async def _handle_payment_failed(
        self, event: CanonicalEvent, resolution: _Resolution
    ) -> None:
        existing = await self._find_subscription(event, resolution)
        if existing is None:
            return
        if self._is_stale(existing, event):
            resolution.outcome = ReconciliationOutcome.STALE
            return

        await self._update_subscription(
            event,
            existing.id,
            {
                "status": SubscriptionStatus.PAST_DUE,
                "last_event_at": self._latest_event_at(existing, event),
            },
        )
        await self._repo.update_profile(
            existing.professional_id, status=SubscriptionStatus.PAST_DUE
        )
        logger.warning(f"Payment failed for subscription {existing.id}, set to past_due")

    async def _handle_payment_refunded(
        self, event: CanonicalEvent, resolution: _Resolution
    ) -> None:
        payment_id = event.data.payment_id
        payment = await self._repo.get_payment_by_gateway_id(payment_id) if payment_id else None
        if payment is None:
            logger.warning(f"Refund for unknown payment {payment_id} ({event.gateway})")
            resolution.outcome = ReconciliationOutcome.NOT_FOUND
            return

        resolution.subscription_id = payment.subscription_id
        if await self._repo.update_payment_status(payment.id, PaymentStatus.REFUNDED) is None:
            raise ReconciliationError(
                f"Payment {payment.id} disappeared during reconciliation",
                event_type=event.event_type,
            )
        logger.info(f"Payment {payment_id} marked as refunded")

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _find_subscription(
        self, event: CanonicalEvent, resolution: _Resolution
    ) -> Optional[Subscription]:
        gateway_subscription_id = event.data.subscription_id
        existing = None
        if gateway_subscription_id:
            existing = await self._repo.get_subscription_by_gateway_id(gateway_subscription_id)

        if existing is None:
            logger.warning(
                f"No subscription for gateway id {gateway_subscription_id} "
                f"({event.gateway}, {event.event_type})"
            )
            resolution.outcome = ReconciliationOutcome.NOT_FOUND
            return None

        resolution.subscription_id = existing.id
        return existing

    async def _update_subscription(
        self, event: CanonicalEvent, subscription_id: str, changes: dict
    ) -> Subscription:
        updated = await self._repo.update_subscription(subscription_id, changes)
        if updated is None:
            raise ReconciliationError(
                f"Subscription {subscription_id} disappeared during reconciliation",
                event_type=event.event_type,
            )
        return updated

    def _is_stale(self, subscription: Subscription, event: CanonicalEvent) -> bool:
        if event.occurred_at is None or subscription.last_event_at is None:
            return False
        stale = _aware(event.occurred_at) < _aware(subscription.last_event_at)
        if stale:
            logger.info(
                f"Skipping stale {event.event_type} for subscription {subscription.id}: "
                f"{event.occurred_at.isoformat()} < {subscription.last_event_at.isoformat()}"
            )
        return stale

    def _latest_event_at(
        self, subscription: Optional[Subscription], event: CanonicalEvent
    ) -> Optional[datetime]:
        previous = subscription.last_event_at if subscription else None
        if event.occurred_at is None:
            return previous
        if previous is None:
            return _aware(event.occurred_at)
        return max(_aware(previous), _aware(event.occurred_at))

    def _resolve_plan(self, value: object) -> SubscriptionPlan:
        try:
            plan = SubscriptionPlan(str(value).lower())
        except ValueError:
            return self._default_plan
        return self._default_plan if plan == SubscriptionPlan.FREE else plan

    def _payment_method(self, billing_type: Optional[str]) -> str:
        if not billing_type:
            return "card"
        method = billing_type.strip().lower()
        return PAYMENT_METHOD_ALIASES.get(method, method)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
