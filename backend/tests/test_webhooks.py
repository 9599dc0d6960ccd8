"""
Integration Tests for the subscription webhook endpoint

Verifies:
- Normalization + reconciliation through the HTTP surface
- Signature verification failure (401)
- Malformed payloads (500, no writes)
- Idempotency (prevent double processing)
"""

import json
from datetime import datetime, timezone

import pytest

from acolhe_billing.domain.subscription import PaymentStatus, SubscriptionPlan, SubscriptionStatus

PROFESSIONAL_ID = "11111111-1111-1111-1111-111111111111"


@pytest.fixture
def subscription(repo):
    return repo.add_subscription(
        professional_id=PROFESSIONAL_ID,
        plan=SubscriptionPlan.PRO,
        status=SubscriptionStatus.PAST_DUE,
        gateway="asaas",
        gateway_subscription_id="sub_1",
    )


def post_webhook(client, gateway, body, headers=None):
    return client.post(
        f"/subscription-webhook?gateway={gateway}",
        content=body if isinstance(body, str) else json.dumps(body),
        headers={"content-type": "application/json", **(headers or {})},
    )


class TestSubscriptionWebhook:

    def test_asaas_payment_received(self, client, repo, subscription):
        """Asaas PAYMENT_RECEIVED records one approved payment and reactivates."""
        body = {
            "id": "evt_asaas_1",
            "event": "PAYMENT_RECEIVED",
            "payment": {"id": "pay_1", "subscription": "sub_1", "value": 9700},
        }

        response = post_webhook(client, "asaas", body)

        assert response.status_code == 200
        assert response.json() == {
            "processed": True,
            "subscriptionId": subscription.id,
            "event_type": "payment_succeeded",
        }
        payments = list(repo.payments.values())
        assert len(payments) == 1
        assert payments[0].amount_cents == 9700
        assert payments[0].status == PaymentStatus.APPROVED
        assert repo.subscriptions[subscription.id].status == SubscriptionStatus.ACTIVE
        assert repo.audit_log[-1].action == "webhook_payment_succeeded"

    def test_replayed_payment_inserts_once(self, client, repo, subscription):
        body = {
            "id": "evt_asaas_2",
            "event": "PAYMENT_CONFIRMED",
            "payment": {"id": "pay_2", "subscription": "sub_1", "value": 9700},
        }

        first = post_webhook(client, "asaas", body)
        second = post_webhook(client, "asaas", body)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["processed"] is True
        assert len(repo.payments) == 1
        assert repo.audit_log[-1].details["outcome"] == "duplicate"

    def test_same_payment_under_new_event_id_inserts_once(self, client, repo, subscription):
        payment = {"id": "pay_3", "subscription": "sub_1", "value": 9700}

        post_webhook(client, "asaas", {"id": "evt_a", "event": "PAYMENT_CONFIRMED", "payment": payment})
        post_webhook(client, "asaas", {"id": "evt_b", "event": "PAYMENT_RECEIVED", "payment": payment})

        assert len(repo.payments) == 1

    def test_malformed_json_returns_500_without_writes(self, client, repo, subscription):
        response = post_webhook(client, "asaas", "{not json")

        assert response.status_code == 500
        assert "error" in response.json()
        assert repo.payments == {}
        assert repo.audit_log == []
        assert repo.subscriptions[subscription.id].status == SubscriptionStatus.PAST_DUE

    def test_unknown_gateway_accepted_as_generic(self, client, repo):
        response = post_webhook(client, "acme", {"type": "x"})

        assert response.status_code == 200
        assert response.json() == {"processed": True, "subscriptionId": None, "event_type": "x"}
        assert repo.audit_log[-1].details["gateway"] == "generic"
        assert repo.audit_log[-1].details["outcome"] == "ignored"

    def test_unknown_gateway_with_non_json(self, client):
        response = post_webhook(client, "acme", "plain text")

        assert response.status_code == 500
        assert response.json()["error"] == "Unknown gateway: acme"

    def test_non_string_type_is_acknowledged(self, client, repo):
        response = post_webhook(client, "stripe", {"id": "evt_num", "type": 5, "created": 10**20})

        assert response.status_code == 200
        assert response.json()["event_type"] == "5"
        assert repo.audit_log[-1].details["outcome"] == "ignored"

    def test_cancellation_downgrades_profile(self, client, repo, subscription):
        body = {"id": "evt_del", "event": "SUBSCRIPTION_DELETED", "subscription": {"id": "sub_1"}}

        response = post_webhook(client, "asaas", body)

        assert response.status_code == 200
        assert repo.subscriptions[subscription.id].status == SubscriptionStatus.CANCELLED
        assert repo.profiles[PROFESSIONAL_ID] == {
            "subscription_plan": "free",
            "subscription_status": "cancelled",
        }

    def test_stale_event_does_not_overwrite(self, client, repo, subscription):
        repo.subscriptions[subscription.id] = subscription.model_copy(update={
            "status": SubscriptionStatus.ACTIVE,
            "last_event_at": datetime(2026, 3, 1, tzinfo=timezone.utc),
        })
        body = {
            "id": "evt_old",
            "event": "PAYMENT_OVERDUE",
            "dateCreated": "2026-02-01 08:00:00",
            "payment": {"id": "pay_old", "subscription": "sub_1"},
        }

        response = post_webhook(client, "asaas", body)

        assert response.status_code == 200
        assert repo.subscriptions[subscription.id].status == SubscriptionStatus.ACTIVE
        assert repo.audit_log[-1].details["outcome"] == "stale"

    def test_unmatched_subscription_is_acknowledged(self, client, repo):
        body = {"id": "evt_x", "event": "PAYMENT_OVERDUE", "payment": {"subscription": "ghost"}}

        response = post_webhook(client, "asaas", body)

        assert response.status_code == 200
        assert response.json()["subscriptionId"] is None
        assert repo.audit_log[-1].details["outcome"] == "not_found"

    def test_reconciliation_failure_returns_500(self, client, repo, subscription, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(repo, "update_subscription", broken)
        body = {"id": "evt_f", "event": "PAYMENT_OVERDUE", "payment": {"subscription": "sub_1"}}

        response = post_webhook(client, "asaas", body)

        assert response.status_code == 500
        assert response.json() == {"error": "database unavailable"}
        assert repo.processed_events == {}
        assert repo.audit_log[-1].details["processed"] is False


class TestSignatureEnforcement:

    @pytest.fixture
    def signed_client(self, settings, make_client):
        settings.asaas_webhook_token = "asaas_tok"
        return make_client(settings)

    def test_invalid_signature_returns_401(self, signed_client, repo, subscription):
        body = {"id": "evt_sig", "event": "PAYMENT_RECEIVED", "payment": {"id": "pay_9", "subscription": "sub_1"}}

        response = post_webhook(signed_client, "asaas", body, {"asaas-access-token": "forged"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid webhook signature"
        assert repo.payments == {}
        assert repo.audit_log == []

    def test_valid_signature_is_processed(self, signed_client, repo, subscription):
        body = {"id": "evt_sig", "event": "PAYMENT_RECEIVED", "payment": {"id": "pay_9", "subscription": "sub_1"}}

        response = post_webhook(signed_client, "asaas", body, {"asaas-access-token": "asaas_tok"})

        assert response.status_code == 200
        assert len(repo.payments) == 1

    def test_non_ascii_signature_returns_401(self, settings, make_client, repo):
        settings.pagarme_webhook_secret = "pg_secret"
        client = make_client(settings)

        response = post_webhook(
            client, "pagarme", {"type": "charge.paid"}, {"x-hub-signature": b"sha1=\xe9\xe9"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid webhook signature"
        assert repo.audit_log == []


class TestHealth:

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "acolhe-billing"}

    def test_cors_preflight(self, client):
        response = client.options(
            "/subscription-webhook",
            headers={
                "origin": "https://www.asaas.com",
                "access-control-request-method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
