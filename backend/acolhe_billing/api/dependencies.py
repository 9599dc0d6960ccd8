"""
API Dependencies

FastAPI dependency injection for settings, gateway adapters and the
webhook processing pipeline.
"""

from typing import Annotated

from fastapi import Depends, Request

from acolhe_billing.config.settings import Settings
from acolhe_billing.domain.processor import WebhookProcessor
from acolhe_billing.domain.reconciler import SubscriptionReconciler
from acolhe_billing.domain.subscription import SubscriptionPlan, SubscriptionStatus
from acolhe_billing.infrastructure.gateways import GatewayRegistry
from acolhe_billing.infrastructure.db.dependencies import BillingRepoDep


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_gateway_registry(request: Request) -> GatewayRegistry:
    """Gateway registry built once at startup."""
    return request.app.state.gateway_registry


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
GatewayRegistryDep = Annotated[GatewayRegistry, Depends(get_gateway_registry)]


def get_webhook_processor(
    settings: SettingsDep,
    repository: BillingRepoDep,
) -> WebhookProcessor:
    """
    Build the per-request webhook processor.

    The reconciler and processor share the request's repository, so the
    reconciliation savepoint, audit entry and processed-event marker all
    live in the same transaction.
    """
    reconciler = SubscriptionReconciler(
        repository,
        default_plan=SubscriptionPlan(settings.default_paid_plan),
        status_fallback=SubscriptionStatus(settings.status_fallback),
    )
    return WebhookProcessor(repository, reconciler)


WebhookProcessorDep = Annotated[WebhookProcessor, Depends(get_webhook_processor)]
