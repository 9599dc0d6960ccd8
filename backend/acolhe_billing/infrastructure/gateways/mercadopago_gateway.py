"""
Mercado Pago webhook adapter

Handles preapproval (subscription) notifications and payment notifications.
Signatures follow the `x-signature: ts=...,v1=...` scheme, an HMAC-SHA256
over the `id:<data.id>;request-id:<x-request-id>;ts:<ts>;` manifest.
"""

import hashlib
import hmac
import json
from typing import Any, Mapping, Optional

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


# `payment` notifications carry the outcome in data.status
PAYMENT_STATUS_MAP = {
    "approved": CanonicalEventType.PAYMENT_SUCCEEDED,
    "rejected": CanonicalEventType.PAYMENT_FAILED,
    "refunded": CanonicalEventType.PAYMENT_REFUNDED,
    "charged_back": CanonicalEventType.PAYMENT_REFUNDED,
}

PAYMENT_TYPES = {"payment", "subscription_authorized_payment"}


class MercadoPagoGateway(GatewayAdapter):
    """Mercado Pago notifications (`type` + `action` + `data`)."""

    name = Gateway.MERCADOPAGO.value
    event_type_map = {
        "subscription_preapproval": CanonicalEventType.SUBSCRIPTION_CREATED,
        "subscription_preapproval.updated": CanonicalEventType.SUBSCRIPTION_UPDATED,
        "subscription_authorized_payment": CanonicalEventType.PAYMENT_SUCCEEDED,
    }

    def verify(self, raw_body: str, headers: Mapping[str, str], secret: str) -> bool:
        signature = headers.get("x-signature")
        if not signature:
            return False

        parts = dict(
            part.strip().split("=", 1)
            for part in signature.split(",")
            if "=" in part
        )
        ts, received = parts.get("ts"), parts.get("v1")
        if not ts or not received:
            return False

        data_id = self._data_id(raw_body)
        request_id = headers.get("x-request-id")
        manifest = ""
        if data_id:
            manifest += f"id:{data_id};"
        if request_id:
            manifest += f"request-id:{request_id};"
        manifest += f"ts:{ts};"

        expected = hmac.new(
            secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return signatures_match(expected, received)

    def map_event_type(self, native_type: Optional[str], status: Optional[str] = None) -> str:
        if native_type == "payment" and status in PAYMENT_STATUS_MAP:
            return PAYMENT_STATUS_MAP[status].value
        return super().map_event_type(native_type)

    def _normalize(self, body: dict[str, Any]) -> CanonicalEvent:
        native_type = as_str(first(body.get("type"), body.get("topic")))
        data_obj = as_dict(body.get("data"))
        status = as_str(data_obj.get("status"))
        auto_recurring = as_dict(data_obj.get("auto_recurring"))

        data = NormalizedFields(
            subscription_id=as_str(first(
                data_obj.get("preapproval_id"),
                data_obj.get("id"),
            )),
            payment_id=as_str(data_obj.get("id")) if native_type in PAYMENT_TYPES else None,
            customer_id=as_str(first(
                data_obj.get("payer_id"),
                dig(data_obj, "payer", "id"),
            )),
            payer_email=as_str(first(
                dig(data_obj, "payer", "email"),
                data_obj.get("payer_email"),
            )),
            external_reference=as_str(data_obj.get("external_reference")),
            status=status,
            amount=as_int(first(
                data_obj.get("transaction_amount"),
                auto_recurring.get("transaction_amount"),
            )),
            currency=as_str(first(
                data_obj.get("currency_id"),
                auto_recurring.get("currency_id"),
            )),
            billing_type=as_str(data_obj.get("payment_type_id")),
            action=as_str(body.get("action")),
            current_period_end=parse_timestamp(data_obj.get("next_payment_date")),
            metadata=as_dict(data_obj.get("metadata")),
            raw=body,
        )

        return CanonicalEvent(
            gateway=self.name,
            event_type=self.map_event_type(native_type, status),
            data=data,
            event_id=as_str(body.get("id")),
            occurred_at=parse_timestamp(body.get("date_created")),
        )

    def _data_id(self, raw_body: str) -> Optional[str]:
        try:
            body = json.loads(raw_body)
        except (TypeError, ValueError):
            return None
        data_id = as_str(dig(body, "data", "id"))
        # Alphanumeric ids are signed lowercased
        return data_id.lower() if data_id else None
