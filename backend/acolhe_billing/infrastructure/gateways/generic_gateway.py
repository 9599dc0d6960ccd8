"""
Generic webhook adapter

Fallback for unknown `gateway` values: any JSON object with a `type` field
is accepted and its fields are read as already-normalized names.
"""

from typing import Any, Mapping

from acolhe_billing.domain.subscription import CanonicalEvent, Gateway, NormalizedFields
from acolhe_billing.infrastructure.exceptions import WebhookParseError
from acolhe_billing.infrastructure.gateways.base import (
    GatewayAdapter,
    as_bool,
    as_dict,
    as_int,
    as_str,
    first,
    parse_timestamp,
    signatures_match,
)


class GenericGateway(GatewayAdapter):
    """JSON payloads from gateways without a dedicated adapter."""

    name = Gateway.GENERIC.value

    def __init__(self, requested_name: str = "unknown"):
        self.requested_name = requested_name

    def verify(self, raw_body: str, headers: Mapping[str, str], secret: str) -> bool:
        token = headers.get("x-webhook-secret")
        if not token:
            return False
        return signatures_match(secret, token)

    def parse(self, raw_body: str) -> CanonicalEvent:
        try:
            body = self._load_json(raw_body)
        except WebhookParseError as e:
            raise WebhookParseError(
                f"Unknown gateway: {self.requested_name}",
                gateway=self.requested_name,
                original_error=e,
            )
        return self._build_event(body)

    def _normalize(self, body: dict[str, Any]) -> CanonicalEvent:
        data = NormalizedFields(
            subscription_id=as_str(body.get("subscription_id")),
            payment_id=as_str(body.get("payment_id")),
            customer_id=as_str(body.get("customer_id")),
            payer_email=as_str(body.get("payer_email")),
            external_reference=as_str(body.get("external_reference")),
            status=as_str(body.get("status")),
            amount=as_int(body.get("amount")),
            currency=as_str(body.get("currency")),
            billing_type=as_str(body.get("billing_type")),
            current_period_start=parse_timestamp(body.get("current_period_start")),
            current_period_end=parse_timestamp(body.get("current_period_end")),
            cancel_at_period_end=as_bool(body.get("cancel_at_period_end")),
            metadata=as_dict(body.get("metadata")),
            raw=body,
        )

        return CanonicalEvent(
            gateway=self.name,
            event_type=as_str(body.get("type")) or "unknown",
            data=data,
            event_id=as_str(body.get("id")),
            occurred_at=parse_timestamp(first(body.get("created_at"), body.get("created"))),
        )
