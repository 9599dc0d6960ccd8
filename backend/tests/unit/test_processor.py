"""
Unit tests for WebhookProcessor.

Verifies:
- Duplicate deliveries are skipped
- Every delivery is audited
- Only successful deliveries are marked processed
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from acolhe_billing.domain.processor import WebhookProcessor
from acolhe_billing.domain.reconciler import SubscriptionReconciler
from acolhe_billing.domain.subscription import (
    CanonicalEvent,
    NormalizedFields,
    ReconciliationOutcome,
    ReconciliationResult,
    SubscriptionStatus,
)


def make_event(event_type="payment_overdue", event_id="evt_1", subscription_id="sub_1") -> CanonicalEvent:
    return CanonicalEvent(
        gateway="asaas",
        event_type=event_type,
        data=NormalizedFields(subscription_id=subscription_id),
        event_id=event_id,
    )


@pytest.fixture
def processor(repo):
    return WebhookProcessor(repo, SubscriptionReconciler(repo))


class TestWebhookProcessor:

    @pytest.mark.asyncio
    async def test_applied_event_is_marked_and_audited(self, repo, processor):
        subscription = repo.add_subscription(professional_id="p1", gateway_subscription_id="sub_1")

        result = await processor.handle(make_event())

        assert result.outcome == ReconciliationOutcome.APPLIED
        assert repo.subscriptions[subscription.id].status == SubscriptionStatus.PAST_DUE
        assert repo.processed_events == {"asaas:evt_1": "payment_overdue"}

        entry = repo.audit_log[-1]
        assert entry.action == "webhook_payment_overdue"
        assert entry.entity_type == "subscription"
        assert entry.entity_id == subscription.id
        assert entry.details == {
            "gateway": "asaas",
            "event_type": "payment_overdue",
            "processed": True,
            "outcome": "applied",
            "event_id": "evt_1",
        }

    @pytest.mark.asyncio
    async def test_duplicate_delivery_skips_reconciler(self, repo):
        reconciler = MagicMock()
        reconciler.apply = AsyncMock()
        processor = WebhookProcessor(repo, reconciler)
        repo.processed_events["asaas:evt_1"] = "payment_overdue"

        result = await processor.handle(make_event())

        reconciler.apply.assert_not_called()
        assert result.success is True
        assert result.outcome == ReconciliationOutcome.DUPLICATE
        assert repo.audit_log[-1].details["outcome"] == "duplicate"

    @pytest.mark.asyncio
    async def test_failed_event_is_audited_but_not_marked(self, repo):
        reconciler = MagicMock()
        reconciler.apply = AsyncMock(return_value=ReconciliationResult(
            success=False,
            event_type="payment_overdue",
            outcome=ReconciliationOutcome.FAILED,
            subscription_id="row-1",
            error="boom",
        ))
        processor = WebhookProcessor(repo, reconciler)

        result = await processor.handle(make_event())

        assert result.success is False
        assert repo.processed_events == {}
        entry = repo.audit_log[-1]
        assert entry.entity_id == "row-1"
        assert entry.details["processed"] is False
        assert entry.details["error"] == "boom"

    @pytest.mark.asyncio
    async def test_event_without_id_is_never_marked(self, repo, processor):
        await processor.handle(make_event(event_type="PAYMENT_CREATED", event_id=None))
        await processor.handle(make_event(event_type="PAYMENT_CREATED", event_id=None))

        assert repo.processed_events == {}
        assert len(repo.audit_log) == 2
        assert repo.audit_log[0].details["outcome"] == "ignored"

    @pytest.mark.asyncio
    async def test_not_found_is_still_processed(self, repo, processor):
        result = await processor.handle(make_event(subscription_id="missing"))

        assert result.success is True
        assert result.outcome == ReconciliationOutcome.NOT_FOUND
        assert "asaas:evt_1" in repo.processed_events
        assert repo.audit_log[-1].entity_id is None
