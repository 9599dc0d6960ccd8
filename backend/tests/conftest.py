"""
Test configuration and fixtures for the billing webhooks service.

Provides an in-memory billing repository, settings and an API client
wired to the repository through dependency overrides.
"""

import copy
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

import pytest
from fastapi.testclient import TestClient

from acolhe_billing.config.settings import Settings
from acolhe_billing.domain.interfaces import IBillingRepository
from acolhe_billing.domain.subscription import (
    AuditLogEntry,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)


class InMemoryBillingRepository(IBillingRepository):
    """Dict-backed billing repository with snapshot/restore transactions."""

    def __init__(self) -> None:
        self.subscriptions: dict[str, Subscription] = {}
        self.payments: dict[str, Payment] = {}
        self.profiles: dict[str, dict[str, Optional[str]]] = {}
        self.audit_log: list[AuditLogEntry] = []
        self.processed_events: dict[str, str] = {}

    # Test helpers

    def add_profile(self, professional_id: str, plan: str = "free", status: Optional[str] = None) -> None:
        self.profiles[professional_id] = {
            "subscription_plan": plan,
            "subscription_status": status,
        }

    def add_subscription(self, **fields: Any) -> Subscription:
        subscription = Subscription(id=fields.pop("id", None) or str(uuid.uuid4()), **fields)
        self.subscriptions[subscription.id] = subscription
        return subscription

    # IBillingRepository

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        snapshot = (
            copy.deepcopy(self.subscriptions),
            copy.deepcopy(self.payments),
            copy.deepcopy(self.profiles),
        )
        try:
            yield
        except Exception:
            self.subscriptions, self.payments, self.profiles = snapshot
            raise

    async def get_subscription_by_professional(self, professional_id: str) -> Optional[Subscription]:
        for subscription in self.subscriptions.values():
            if subscription.professional_id == professional_id:
                return subscription.model_copy()
        return None

    async def get_subscription_by_gateway_id(self, gateway_subscription_id: str) -> Optional[Subscription]:
        for subscription in self.subscriptions.values():
            if subscription.gateway_subscription_id == gateway_subscription_id:
                return subscription.model_copy()
        return None

    async def upsert_subscription(self, subscription: Subscription) -> Subscription:
        existing = await self.get_subscription_by_professional(subscription.professional_id)
        now = datetime.now(timezone.utc)
        stored = subscription.model_copy(
            update={
                "id": existing.id if existing else (subscription.id or str(uuid.uuid4())),
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            }
        )
        self.subscriptions[stored.id] = stored
        return stored.model_copy()

    async def update_subscription(self, subscription_id: str, changes: dict[str, Any]) -> Optional[Subscription]:
        existing = self.subscriptions.get(subscription_id)
        if existing is None:
            return None
        updated = existing.model_copy(
            update={**changes, "updated_at": datetime.now(timezone.utc)}
        )
        self.subscriptions[subscription_id] = updated
        return updated.model_copy()

    async def update_profile(
        self,
        professional_id: str,
        *,
        plan: Optional[SubscriptionPlan] = None,
        status: Optional[SubscriptionStatus] = None,
    ) -> None:
        profile = self.profiles.get(professional_id)
        if profile is None:
            return
        if plan is not None:
            profile["subscription_plan"] = plan.value
        if status is not None:
            profile["subscription_status"] = status.value

    async def insert_payment(self, payment: Payment) -> tuple[Payment, bool]:
        if payment.gateway_payment_id:
            existing = await self.get_payment_by_gateway_id(payment.gateway_payment_id)
            if existing:
                return existing, False
        stored = payment.model_copy(
            update={
                "id": payment.id or str(uuid.uuid4()),
                "created_at": datetime.now(timezone.utc),
            }
        )
        self.payments[stored.id] = stored
        return stored.model_copy(), True

    async def get_payment_by_gateway_id(self, gateway_payment_id: str) -> Optional[Payment]:
        for payment in self.payments.values():
            if payment.gateway_payment_id == gateway_payment_id:
                return payment.model_copy()
        return None

    async def update_payment_status(self, payment_id: str, status: PaymentStatus) -> Optional[Payment]:
        existing = self.payments.get(payment_id)
        if existing is None:
            return None
        updated = existing.model_copy(update={"status": status})
        self.payments[payment_id] = updated
        return updated.model_copy()

    async def append_audit_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        stored = entry.model_copy(
            update={"id": str(uuid.uuid4()), "created_at": datetime.now(timezone.utc)}
        )
        self.audit_log.append(stored)
        return stored

    async def is_event_processed(self, delivery_key: str) -> bool:
        return delivery_key in self.processed_events

    async def mark_event_processed(self, delivery_key: str, event_type: str) -> None:
        self.processed_events.setdefault(delivery_key, event_type)


# =============================================================================
# Repository and Settings Fixtures
# =============================================================================

PROFESSIONAL_ID = "11111111-1111-1111-1111-111111111111"


@pytest.fixture
def repo() -> InMemoryBillingRepository:
    """Empty in-memory repository with one professional profile."""
    repository = InMemoryBillingRepository()
    repository.add_profile(PROFESSIONAL_ID)
    return repository


@pytest.fixture
def settings() -> Settings:
    """Settings without database or gateway secrets."""
    return Settings(
        _env_file=None,
        environment="testing",
        database_url=None,
        supabase_url=None,
        supabase_password=None,
        stripe_webhook_secret=None,
        mercadopago_webhook_secret=None,
        asaas_webhook_token=None,
        pagseguro_webhook_token=None,
        pagarme_webhook_secret=None,
        generic_webhook_secret=None,
        webhook_require_signature=False,
    )


# =============================================================================
# App Fixtures
# =============================================================================

def build_client(settings: Settings, repo: InMemoryBillingRepository) -> TestClient:
    """TestClient for an app whose repository dependency is the in-memory one."""
    from acolhe_billing.infrastructure.db.dependencies import get_billing_repository
    from acolhe_billing.main import create_app

    app = create_app(settings)
    app.dependency_overrides[get_billing_repository] = lambda: repo
    return TestClient(app)


@pytest.fixture
def client(settings, repo) -> TestClient:
    """Synchronous test client backed by the in-memory repository."""
    return build_client(settings, repo)


@pytest.fixture
def make_client(repo):
    """Factory for clients built from custom settings."""
    def _make(settings: Settings) -> TestClient:
        return build_client(settings, repo)
    return _make
