"""
Stripe webhook adapter

Signature verification is delegated to the Stripe SDK; payloads are
normalized from the `data.object` of subscription, invoice, charge and
checkout session events.
"""

import logging
from typing import Any, Mapping

import stripe

from acolhe_billing.domain.subscription import (
    CanonicalEvent,
    CanonicalEventType,
    Gateway,
    NormalizedFields,
)
from acolhe_billing.infrastructure.gateways.base import (
    GatewayAdapter,
    as_bool,
    as_dict,
    as_int,
    as_str,
    dig,
    first,
    parse_timestamp,
)


logger = logging.getLogger(__name__)


class StripeGateway(GatewayAdapter):
    """Stripe events (`type` + `data.object`)."""

    name = Gateway.STRIPE.value
    event_type_map = {
        "customer.subscription.created": CanonicalEventType.SUBSCRIPTION_CREATED,
        "customer.subscription.updated": CanonicalEventType.SUBSCRIPTION_UPDATED,
        "customer.subscription.deleted": CanonicalEventType.SUBSCRIPTION_CANCELLED,
        "invoice.paid": CanonicalEventType.PAYMENT_SUCCEEDED,
        "invoice.payment_succeeded": CanonicalEventType.PAYMENT_SUCCEEDED,
        "invoice.payment_failed": CanonicalEventType.PAYMENT_FAILED,
        "charge.refunded": CanonicalEventType.PAYMENT_REFUNDED,
        "checkout.session.completed": CanonicalEventType.CHECKOUT_COMPLETED,
    }

    def __init__(self, tolerance: int = 300):
        self._tolerance = tolerance

    def verify(self, raw_body: str, headers: Mapping[str, str], secret: str) -> bool:
        signature = headers.get("stripe-signature")
        if not signature:
            return False
        try:
            stripe.WebhookSignature.verify_header(
                raw_body, signature, secret, self._tolerance
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe signature verification failed: {e}")
            return False
        return True

    def _normalize(self, body: dict[str, Any]) -> CanonicalEvent:
        obj = as_dict(dig(body, "data", "object"))
        object_kind = obj.get("object")

        # Newer API versions moved period bounds onto subscription items
        items = dig(obj, "items", "data")
        first_item = as_dict(items[0]) if isinstance(items, list) and items else {}

        metadata = first(
            obj.get("metadata"),
            dig(obj, "subscription_details", "metadata"),
            dig(obj, "parent", "subscription_details", "metadata"),
        )

        if object_kind == "invoice":
            payment_id = obj.get("id")
        elif object_kind == "charge":
            payment_id = first(obj.get("invoice"), obj.get("id"))
        else:
            payment_id = None

        data = NormalizedFields(
            subscription_id=as_str(first(
                obj.get("subscription"),
                dig(obj, "parent", "subscription_details", "subscription"),
                obj.get("id"),
            )),
            payment_id=as_str(payment_id),
            customer_id=as_str(obj.get("customer")),
            payer_email=as_str(first(
                obj.get("customer_email"),
                dig(obj, "customer_details", "email"),
            )),
            external_reference=as_str(obj.get("client_reference_id")),
            status=as_str(obj.get("status")),
            amount=as_int(first(obj.get("amount_total"), obj.get("amount_paid"))),
            currency=as_str(obj.get("currency")),
            current_period_start=parse_timestamp(first(
                obj.get("current_period_start"),
                first_item.get("current_period_start"),
            )),
            current_period_end=parse_timestamp(first(
                obj.get("current_period_end"),
                first_item.get("current_period_end"),
            )),
            cancel_at_period_end=as_bool(obj.get("cancel_at_period_end")),
            metadata=as_dict(metadata),
            raw=body,
        )

        return CanonicalEvent(
            gateway=self.name,
            event_type=self.map_event_type(body.get("type")),
            data=data,
            event_id=as_str(body.get("id")),
            occurred_at=parse_timestamp(body.get("created")),
        )
