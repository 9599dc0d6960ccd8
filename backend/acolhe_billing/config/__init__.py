"""Configuration package."""

from acolhe_billing.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
