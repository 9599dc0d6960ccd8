"""
Asaas webhook adapter

Asaas sends `event` plus either a `payment` or a `subscription` object and
authenticates deliveries with the static `asaas-access-token` header.
"""

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
    first,
    parse_timestamp,
    signatures_match,
)


class AsaasGateway(GatewayAdapter):
    """Asaas payment and subscription events."""

    name = Gateway.ASAAS.value
    event_type_map = {
        "PAYMENT_CONFIRMED": CanonicalEventType.PAYMENT_SUCCEEDED,
        "PAYMENT_RECEIVED": CanonicalEventType.PAYMENT_SUCCEEDED,
        "PAYMENT_OVERDUE": CanonicalEventType.PAYMENT_OVERDUE,
        "PAYMENT_REFUNDED": CanonicalEventType.PAYMENT_REFUNDED,
        "SUBSCRIPTION_CREATED": CanonicalEventType.SUBSCRIPTION_CREATED,
        "SUBSCRIPTION_UPDATED": CanonicalEventType.SUBSCRIPTION_UPDATED,
        "SUBSCRIPTION_DELETED": CanonicalEventType.SUBSCRIPTION_CANCELLED,
        "SUBSCRIPTION_RENEWED": CanonicalEventType.SUBSCRIPTION_RENEWED,
    }

    def verify(self, raw_body: str, headers: Mapping[str, str], secret: str) -> bool:
        token = headers.get("asaas-access-token")
        if not token:
            return False
        return signatures_match(secret, token)

    def _normalize(self, body: dict[str, Any]) -> CanonicalEvent:
        payment = as_dict(body.get("payment"))
        subscription = as_dict(body.get("subscription"))

        data = NormalizedFields(
            subscription_id=as_str(first(payment.get("subscription"), subscription.get("id"))),
            payment_id=as_str(payment.get("id")),
            customer_id=as_str(first(payment.get("customer"), subscription.get("customer"))),
            external_reference=as_str(first(
                payment.get("externalReference"),
                subscription.get("externalReference"),
            )),
            status=as_str(first(payment.get("status"), subscription.get("status"))),
            amount=as_int(first(payment.get("value"), subscription.get("value"))),
            currency="BRL",
            billing_type=as_str(first(payment.get("billingType"), subscription.get("billingType"))),
            current_period_end=parse_timestamp(subscription.get("nextDueDate")),
            metadata=as_dict(first(payment.get("metadata"), subscription.get("metadata"))),
            raw=body,
        )

        return CanonicalEvent(
            gateway=self.name,
            event_type=self.map_event_type(body.get("event")),
            data=data,
            event_id=as_str(body.get("id")),
            occurred_at=parse_timestamp(body.get("dateCreated")),
        )
