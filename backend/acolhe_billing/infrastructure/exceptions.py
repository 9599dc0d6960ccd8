"""
Custom Exceptions for the billing webhooks service

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class AcolheBillingError(Exception):
    """Base exception for all billing webhook errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.message,
            "type": self.__class__.__name__,
            "details": self.details
        }


class WebhookParseError(AcolheBillingError):
    """Raised when a webhook body cannot be parsed for its gateway."""

    def __init__(
        self,
        message: str,
        gateway: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if gateway:
            details["gateway"] = gateway
        super().__init__(message, details, original_error)


class SignatureVerificationError(AcolheBillingError):
    """Raised when a webhook signature is missing or does not match."""

    def __init__(self, message: str, gateway: Optional[str] = None):
        details = {}
        if gateway:
            details["gateway"] = gateway
        super().__init__(message, details)


class ReconciliationError(AcolheBillingError):
    """Raised when a canonical event cannot be applied to the ledger."""

    def __init__(
        self,
        message: str,
        event_type: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if event_type:
            details["event_type"] = event_type
        super().__init__(message, details, original_error)


class DatabaseError(AcolheBillingError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class ConfigurationError(AcolheBillingError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
