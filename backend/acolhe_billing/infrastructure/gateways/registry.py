"""
Gateway Registry

Resolves the `gateway` query parameter to an adapter and applies the
signature policy before any payload is parsed.
"""

import logging
from typing import Mapping, Optional

from acolhe_billing.config.settings import Settings
from acolhe_billing.infrastructure.exceptions import SignatureVerificationError
from acolhe_billing.infrastructure.gateways.asaas_gateway import AsaasGateway
from acolhe_billing.infrastructure.gateways.base import GatewayAdapter
from acolhe_billing.infrastructure.gateways.generic_gateway import GenericGateway
from acolhe_billing.infrastructure.gateways.mercadopago_gateway import MercadoPagoGateway
from acolhe_billing.infrastructure.gateways.pagarme_gateway import PagarmeGateway
from acolhe_billing.infrastructure.gateways.pagseguro_gateway import PagSeguroGateway
from acolhe_billing.infrastructure.gateways.stripe_gateway import StripeGateway


logger = logging.getLogger(__name__)


class GatewayRegistry:
    """Known gateway adapters plus the generic fallback."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._adapters: dict[str, GatewayAdapter] = {
            adapter.name: adapter
            for adapter in (
                StripeGateway(tolerance=settings.stripe_signature_tolerance),
                MercadoPagoGateway(),
                AsaasGateway(),
                PagSeguroGateway(),
                PagarmeGateway(),
            )
        }

    @property
    def names(self) -> list[str]:
        return sorted(self._adapters)

    def resolve(self, gateway: Optional[str]) -> GatewayAdapter:
        """Adapter for a gateway name; unknown names get the generic adapter."""
        name = (gateway or "unknown").strip().lower()
        adapter = self._adapters.get(name)
        if adapter is None:
            return GenericGateway(requested_name=name)
        return adapter

    def authenticate(
        self,
        adapter: GatewayAdapter,
        raw_body: str,
        headers: Mapping[str, str],
    ) -> None:
        """
        Enforce the signature policy for one delivery.

        Raises:
            SignatureVerificationError: signature missing or invalid while a
                secret is configured, or no secret while one is required
        """
        secret = self._settings.webhook_secret_for(adapter.name)
        if not secret:
            if self._settings.webhook_require_signature:
                raise SignatureVerificationError(
                    f"No webhook secret configured for gateway {adapter.name}",
                    gateway=adapter.name,
                )
            logger.warning(f"No webhook secret configured for {adapter.name}, accepting unsigned payload")
            return

        if not adapter.verify(raw_body, headers, secret):
            raise SignatureVerificationError("Invalid webhook signature", gateway=adapter.name)
