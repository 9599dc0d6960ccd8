"""
PagSeguro webhook adapter

Deliveries carry `event_type` and a `resource` object. Authenticity is
checked with `x-authenticity-token`, the SHA-256 of `<token>-<raw body>`.
"""

import hashlib
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


class PagSeguroGateway(GatewayAdapter):
    """PagSeguro subscription and charge events."""

    name = Gateway.PAGSEGURO.value
    event_type_map = {
        "SUBSCRIPTION.CREATED": CanonicalEventType.SUBSCRIPTION_CREATED,
        "SUBSCRIPTION.ACTIVE": CanonicalEventType.SUBSCRIPTION_UPDATED,
        "SUBSCRIPTION.SUSPENDED": CanonicalEventType.SUBSCRIPTION_UPDATED,
        "SUBSCRIPTION.CANCELLED": CanonicalEventType.SUBSCRIPTION_CANCELLED,
        "CHARGE.PAID": CanonicalEventType.PAYMENT_SUCCEEDED,
        "CHARGE.FAILED": CanonicalEventType.PAYMENT_FAILED,
    }

    def verify(self, raw_body: str, headers: Mapping[str, str], secret: str) -> bool:
        received = headers.get("x-authenticity-token")
        if not received:
            return False
        expected = hashlib.sha256(f"{secret}-{raw_body}".encode("utf-8")).hexdigest()
        return signatures_match(expected, received.lower())

    def _normalize(self, body: dict[str, Any]) -> CanonicalEvent:
        native_type = as_str(body.get("event_type"))
        resource = as_dict(body.get("resource"))
        is_charge = bool(native_type and native_type.startswith("CHARGE."))

        data = NormalizedFields(
            subscription_id=as_str(first(dig(resource, "subscription", "id"), resource.get("id"))),
            payment_id=as_str(resource.get("id")) if is_charge else None,
            customer_id=as_str(dig(resource, "customer", "id")),
            payer_email=as_str(dig(resource, "customer", "email")),
            external_reference=as_str(resource.get("reference_id")),
            status=as_str(resource.get("status")),
            amount=as_int(dig(resource, "amount", "value")),
            currency=as_str(dig(resource, "amount", "currency")),
            billing_type=as_str(dig(resource, "payment_method", "type")),
            current_period_end=parse_timestamp(resource.get("next_invoice_at")),
            metadata=as_dict(resource.get("metadata")),
            raw=body,
        )

        return CanonicalEvent(
            gateway=self.name,
            event_type=self.map_event_type(native_type),
            data=data,
            event_id=as_str(body.get("id")),
            occurred_at=parse_timestamp(body.get("created_at")),
        )
