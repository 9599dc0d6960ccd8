# API Routes Module
from acolhe_billing.api.routes import webhooks

__all__ = [
    "webhooks",
]
