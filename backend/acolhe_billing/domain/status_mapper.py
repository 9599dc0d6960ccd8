"""
Gateway status mapping

Translates gateway-native subscription statuses into the platform's
five-state vocabulary.
"""

from typing import Optional

from acolhe_billing.domain.subscription import SubscriptionStatus


STATUS_MAP: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "authorized": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "trial": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "overdue": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "pending": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELLED,
    "cancelled": SubscriptionStatus.CANCELLED,
    "paused": SubscriptionStatus.CANCELLED,
    "suspended": SubscriptionStatus.CANCELLED,
    "inactive": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
    "expired": SubscriptionStatus.EXPIRED,
}


def map_status(
    gateway_status: Optional[str],
    fallback: SubscriptionStatus = SubscriptionStatus.PAST_DUE,
) -> Optional[SubscriptionStatus]:
    """
    Map a gateway status string to a canonical status.

    Args:
        gateway_status: Status as sent by the gateway, any case
        fallback: Status used for values the map does not know

    Returns:
        Canonical status, or None when the gateway sent no status at all
    """
    if gateway_status is None or not str(gateway_status).strip():
        return None
    return STATUS_MAP.get(str(gateway_status).strip().lower(), fallback)
