"""
Subscription Domain Models

Domain models for the subscription billing bounded context.
Enums, canonical webhook events, ledger entities and response DTOs.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Gateway(str, Enum):
    """Payment gateways that deliver subscription webhooks."""
    STRIPE = "stripe"
    MERCADOPAGO = "mercadopago"
    ASAAS = "asaas"
    PAGSEGURO = "pagseguro"
    PAGARME = "pagarme"
    GENERIC = "generic"


class SubscriptionPlan(str, Enum):
    """Platform plans a professional can subscribe to."""
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    """Canonical subscription lifecycle status."""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PaymentStatus(str, Enum):
    """Status of a recorded subscription payment."""
    APPROVED = "approved"
    PENDING = "pending"
    REFUNDED = "refunded"


class CanonicalEventType(str, Enum):
    """Gateway-agnostic billing event vocabulary."""
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_RENEWED = "subscription_renewed"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_OVERDUE = "payment_overdue"
    PAYMENT_REFUNDED = "payment_refunded"
    CHECKOUT_COMPLETED = "checkout_completed"


class ReconciliationOutcome(str, Enum):
    """What the reconciler did with an event."""
    APPLIED = "applied"
    NOT_FOUND = "not_found"
    MISSING_PROFESSIONAL = "missing_professional"
    STALE = "stale"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    FAILED = "failed"


# =============================================================================
# Canonical Webhook Event
# =============================================================================

class NormalizedFields(BaseModel):
    """Fixed field set every gateway parser fills in."""
    subscription_id: Optional[str] = None
    payment_id: Optional[str] = None
    customer_id: Optional[str] = None
    payer_email: Optional[str] = None
    external_reference: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    billing_type: Optional[str] = None
    action: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def professional_id(self) -> Optional[str]:
        """Professional the event belongs to, from metadata or external reference."""
        value = self.metadata.get("professional_id") or self.external_reference
        return str(value) if value else None


class CanonicalEvent(BaseModel):
    """A webhook delivery normalized into the platform's event model."""
    gateway: str
    event_type: str
    data: NormalizedFields = Field(default_factory=NormalizedFields)
    event_id: Optional[str] = None
    occurred_at: Optional[datetime] = None

    @property
    def canonical_type(self) -> Optional[CanonicalEventType]:
        """The canonical type, or None for passthrough gateway-native types."""
        try:
            return CanonicalEventType(self.event_type)
        except ValueError:
            return None

    @property
    def delivery_key(self) -> Optional[str]:
        """Key used to recognize re-deliveries of the same gateway event."""
        if not self.event_id:
            return None
        return f"{self.gateway}:{self.event_id}"


# =============================================================================
# Ledger Entities
# =============================================================================

class Subscription(BaseModel):
    """A professional's billing relationship with the platform."""
    id: Optional[str] = None
    professional_id: str
    plan: SubscriptionPlan = SubscriptionPlan.PRO
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    gateway: Optional[str] = None
    gateway_subscription_id: Optional[str] = None
    gateway_customer_id: Optional[str] = None
    amount_cents: Optional[int] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    last_event_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Payment(BaseModel):
    """A single charge attempt tied to a subscription."""
    id: Optional[str] = None
    subscription_id: str
    professional_id: str
    amount_cents: Optional[int] = None
    gateway: str
    gateway_payment_id: Optional[str] = None
    payment_method: str = "card"
    status: PaymentStatus = PaymentStatus.APPROVED
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuditLogEntry(BaseModel):
    """Append-only record of a processed webhook."""
    id: Optional[str] = None
    action: str
    entity_type: str = "subscription"
    entity_id: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReconciliationResult(BaseModel):
    """Result of applying one canonical event."""
    success: bool
    event_type: str
    outcome: ReconciliationOutcome
    subscription_id: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# Response DTOs
# =============================================================================

class WebhookResponse(BaseModel):
    """Response body echoed back to the gateway."""
    processed: bool
    subscription_id: Optional[str] = Field(default=None, serialization_alias="subscriptionId")
    event_type: str
