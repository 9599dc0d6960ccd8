"""
Payment Gateway Adapters

Signature verification and payload normalization for each payment gateway.
"""

from acolhe_billing.infrastructure.gateways.asaas_gateway import AsaasGateway
from acolhe_billing.infrastructure.gateways.base import GatewayAdapter
from acolhe_billing.infrastructure.gateways.generic_gateway import GenericGateway
from acolhe_billing.infrastructure.gateways.mercadopago_gateway import MercadoPagoGateway
from acolhe_billing.infrastructure.gateways.pagarme_gateway import PagarmeGateway
from acolhe_billing.infrastructure.gateways.pagseguro_gateway import PagSeguroGateway
from acolhe_billing.infrastructure.gateways.registry import GatewayRegistry
from acolhe_billing.infrastructure.gateways.stripe_gateway import StripeGateway

__all__ = [
    "AsaasGateway",
    "GatewayAdapter",
    "GatewayRegistry",
    "GenericGateway",
    "MercadoPagoGateway",
    "PagarmeGateway",
    "PagSeguroGateway",
    "StripeGateway",
]
