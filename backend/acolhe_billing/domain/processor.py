"""
Webhook Processor

Coordinates one webhook delivery: duplicate detection, reconciliation,
audit logging and processed-event bookkeeping.
"""

import logging

from acolhe_billing.domain.interfaces import IBillingRepository
from acolhe_billing.domain.reconciler import SubscriptionReconciler
from acolhe_billing.domain.subscription import (
    AuditLogEntry,
    CanonicalEvent,
    ReconciliationOutcome,
    ReconciliationResult,
)


logger = logging.getLogger(__name__)


class WebhookProcessor:
    """Runs a canonical event through the reconciler and records the outcome."""

    def __init__(
        self,
        repository: IBillingRepository,
        reconciler: SubscriptionReconciler,
    ):
        self._repo = repository
        self._reconciler = reconciler

    async def handle(self, event: CanonicalEvent) -> ReconciliationResult:
        """
        Process a canonical event exactly once per gateway delivery id.

        Every call appends an audit entry, including duplicates and failures.
        """
        delivery_key = event.delivery_key

        if delivery_key and await self._repo.is_event_processed(delivery_key):
            logger.info(f"Event {delivery_key} already processed, skipping")
            result = ReconciliationResult(
                success=True,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.DUPLICATE,
            )
        else:
            logger.info(f"Processing webhook event: {event.event_type} ({event.gateway})")
            result = await self._reconciler.apply(event)
            if result.success and delivery_key:
                await self._repo.mark_event_processed(delivery_key, event.event_type)

        await self._repo.append_audit_entry(self._audit_entry(event, result))
        return result

    def _audit_entry(
        self, event: CanonicalEvent, result: ReconciliationResult
    ) -> AuditLogEntry:
        details = {
            "gateway": event.gateway,
            "event_type": event.event_type,
            "processed": result.success,
            "outcome": result.outcome.value,
            "event_id": event.event_id,
        }
        if result.error:
            details["error"] = result.error
        return AuditLogEntry(
            action=f"webhook_{event.event_type}",
            entity_type="subscription",
            entity_id=result.subscription_id,
            details=details,
        )
