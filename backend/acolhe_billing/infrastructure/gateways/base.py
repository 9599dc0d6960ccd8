"""
Gateway Adapter Base

Each payment gateway is represented by an adapter that verifies the
delivery signature and normalizes the proprietary payload into a
CanonicalEvent.
"""

import hmac
import json
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from acolhe_billing.domain.subscription import CanonicalEvent, CanonicalEventType
from acolhe_billing.infrastructure.exceptions import WebhookParseError


class GatewayAdapter(ABC):
    """
    Verifier + parser pair for one gateway.

    Subclasses declare `name`, their native-type lookup table and implement
    `verify` and `_normalize`.
    """

    name: str = ""
    event_type_map: dict[str, CanonicalEventType] = {}

    def parse(self, raw_body: str) -> CanonicalEvent:
        """
        Parse a raw webhook body into a canonical event.

        Raises:
            WebhookParseError: body is not a JSON object or its fields
                have unusable types
        """
        return self._build_event(self._load_json(raw_body))

    @abstractmethod
    def verify(self, raw_body: str, headers: Mapping[str, str], secret: str) -> bool:
        """Check the delivery signature against the configured secret."""

    @abstractmethod
    def _normalize(self, body: dict[str, Any]) -> CanonicalEvent:
        pass

    def map_event_type(self, native_type: Any) -> str:
        """Canonical type for a native type; unmapped types pass through."""
        native_type = as_str(native_type)
        if native_type in self.event_type_map:
            return self.event_type_map[native_type].value
        return native_type or "unknown"

    def _build_event(self, body: dict[str, Any]) -> CanonicalEvent:
        try:
            return self._normalize(body)
        except (TypeError, ValueError, KeyError, OverflowError) as e:
            raise WebhookParseError(
                f"Unusable webhook payload: {e}", gateway=self.name, original_error=e
            )

    def _load_json(self, raw_body: str) -> dict[str, Any]:
        try:
            body = json.loads(raw_body)
        except (TypeError, ValueError) as e:
            raise WebhookParseError(
                f"Invalid JSON payload: {e}", gateway=self.name, original_error=e
            )
        if not isinstance(body, dict):
            raise WebhookParseError("Webhook payload must be a JSON object", gateway=self.name)
        return body


# =============================================================================
# Payload helpers
# =============================================================================

def dig(source: Any, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a key is missing."""
    current = source
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def first(*values: Any) -> Any:
    """First value that is not None, an empty string or an empty container."""
    for value in values:
        if value is None or value == "":
            continue
        if isinstance(value, (dict, list)) and not value:
            continue
        return value
    return None


def signatures_match(expected: str, received: str) -> bool:
    """Constant-time comparison; headers may carry any latin-1 text."""
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def as_str(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


def as_int(value: Any) -> Optional[int]:
    """Coerce a numeric amount (int, float or numeric string) to an int."""
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        return int(Decimal(str(value)).to_integral_value())
    except (InvalidOperation, ValueError, OverflowError):
        return None


def as_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Normalize gateway timestamps to timezone-aware datetimes.

    Accepts epoch seconds, ISO-8601 strings (with or without offset or `Z`),
    `YYYY-MM-DD HH:MM:SS` and plain `YYYY-MM-DD` dates. Naive values are UTC.
    """
    if value in (None, "") or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return _from_epoch(int(text))
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed_date = date.fromisoformat(text[:10])
            except ValueError:
                return None
            parsed = datetime(parsed_date.year, parsed_date.month, parsed_date.day)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _from_epoch(seconds: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
