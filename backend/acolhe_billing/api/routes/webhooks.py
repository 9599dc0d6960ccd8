"""
Subscription Webhook Handler

Single entry point for subscription webhooks from every supported gateway.
The `gateway` query parameter selects the adapter; unknown names fall back
to the generic adapter.

Pipeline per delivery:
- verify the signature against the raw body (before any parsing)
- normalize the payload into a canonical event
- reconcile it against the ledger, exactly once per gateway event id
- append an audit entry, whatever the outcome
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse

from acolhe_billing.api.dependencies import GatewayRegistryDep, WebhookProcessorDep
from acolhe_billing.domain.subscription import WebhookResponse
from acolhe_billing.infrastructure.exceptions import WebhookParseError


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/subscription-webhook")
async def subscription_webhook(
    request: Request,
    registry: GatewayRegistryDep,
    processor: WebhookProcessorDep,
    gateway: Optional[str] = Query(default=None),
):
    """
    Handle a subscription webhook.

    Returns 200 once the event has been handled (including no-op, stale and
    duplicate deliveries). Returns 500 when reconciliation fails so the
    gateway retries; retries are safe because deliveries are idempotent.
    """
    payload = await request.body()
    try:
        raw_body = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise WebhookParseError("Webhook payload is not valid UTF-8", gateway=gateway, original_error=e)

    adapter = registry.resolve(gateway)
    logger.info(f"Received webhook from {gateway or 'unknown'} ({len(payload)} bytes)")

    registry.authenticate(adapter, raw_body, request.headers)
    event = adapter.parse(raw_body)

    result = await processor.handle(event)

    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": result.error or "Reconciliation failed"},
        )

    response = WebhookResponse(
        processed=True,
        subscription_id=result.subscription_id,
        event_type=event.event_type,
    )
    return response.model_dump(by_alias=True)
