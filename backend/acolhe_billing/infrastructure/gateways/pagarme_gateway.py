"""
Pagar.me webhook adapter

Deliveries carry `type` and a `data` object that either nests
`subscription` / `charge` or is the subscription or charge itself.
Signed with `x-hub-signature: sha1=<hmac-sha1 of the raw body>`.
"""

import hashlib
import hmac
from typing import Any, Mapping

from acolhe_billing.domain.subscription import (
    CanonicalEvent,
    CanonicalEventType,
    Gateway,
    NormalizedFields,
)
from acolhe_billing.infrastructure.gateways.base import (
    GatewayAdapter,
    as_dict,
    as_int,
    as_str,
    dig,
    first,
    parse_timestamp,
    signatures_match,
)


class PagarmeGateway(GatewayAdapter):
    """Pagar.me subscription and charge events."""

    name = Gateway.PAGARME.value
    event_type_map = {
        "subscription.created": CanonicalEventType.SUBSCRIPTION_CREATED,
        "subscription.updated": CanonicalEventType.SUBSCRIPTION_UPDATED,
        "subscription.canceled": CanonicalEventType.SUBSCRIPTION_CANCELLED,
        "charge.paid": CanonicalEventType.PAYMENT_SUCCEEDED,
        "charge.payment_failed": CanonicalEventType.PAYMENT_FAILED,
        "charge.refunded": CanonicalEventType.PAYMENT_REFUNDED,
    }

    def verify(self, raw_body: str, headers: Mapping[str, str], secret: str) -> bool:
        header = headers.get("x-hub-signature")
        if not header:
            return False
        algorithm, _, received = header.partition("=")
        if algorithm != "sha1" or not received:
            return False
        expected = hmac.new(
            secret.encode("utf-8"), raw_body.encode("utf-8"), hashlib.sha1
        ).hexdigest()
        return signatures_match(expected, received)

    def _normalize(self, body: dict[str, Any]) -> CanonicalEvent:
        native_type = as_str(body.get("type")) or ""
        payload = as_dict(body.get("data"))

        subscription = as_dict(payload.get("subscription"))
        charge = as_dict(payload.get("charge"))
        if not subscription and native_type.startswith("subscription."):
            subscription = payload
        if not charge and native_type.startswith("charge."):
            charge = payload

        cycle = as_dict(subscription.get("current_cycle"))

        data = NormalizedFields(
            subscription_id=as_str(first(
                subscription.get("id"),
                dig(charge, "invoice", "subscriptionId"),
            )),
            payment_id=as_str(charge.get("id")),
            customer_id=as_str(first(
                dig(payload, "customer", "id"),
                dig(charge, "customer", "id"),
            )),
            payer_email=as_str(first(
                dig(payload, "customer", "email"),
                dig(charge, "customer", "email"),
            )),
            external_reference=as_str(first(subscription.get("code"), charge.get("code"))),
            status=as_str(first(subscription.get("status"), charge.get("status"))),
            amount=as_int(first(charge.get("amount"), cycle.get("amount"))),
            currency=as_str(first(charge.get("currency"), subscription.get("currency"))),
            billing_type=as_str(first(charge.get("payment_method"), subscription.get("payment_method"))),
            current_period_start=parse_timestamp(cycle.get("start_at")),
            current_period_end=parse_timestamp(cycle.get("end_at")),
            metadata=as_dict(first(subscription.get("metadata"), charge.get("metadata"))),
            raw=body,
        )

        return CanonicalEvent(
            gateway=self.name,
            event_type=self.map_event_type(native_type or None),
            data=data,
            event_id=as_str(body.get("id")),
            occurred_at=parse_timestamp(body.get("created_at")),
        )
