"""Provider factory for creating the exchange provider."""

import logging
from typing import Optional

from blockhaven.config import get_settings
from blockhaven.providers.base import ExchangeProvider
from blockhaven.providers.changenow import ChangeNowProvider
from blockhaven.providers.dryrun import DryRunProvider

logger = logging.getLogger(__name__)

# Singleton instance
_provider_instance: Optional[ExchangeProvider] = None


def get_provider() -> ExchangeProvider:
    """Get the configured exchange provider.

    Provider is selected based on PROVIDER environment variable:
    - dryrun (default): Simulated quotes and orders
    - changenow: ChangeNOW through the storefront gateway

    Returns:
        Configured ExchangeProvider instance
    """
    global _provider_instance

    if _provider_instance is not None:
        return _provider_instance

    settings = get_settings()
    provider_name = settings.provider.lower()

    if provider_name == "changenow":
        _provider_instance = ChangeNowProvider(
            base_url=settings.provider_api_url,
            api_key=settings.provider_api_key,
            timeout=settings.provider_timeout_seconds,
        )
    else:
        if provider_name != "dryrun":
            logger.warning(f"Unknown provider {provider_name!r}, falling back to dry-run")
        _provider_instance = DryRunProvider()

    return _provider_instance


def reset_provider() -> None:
    """Reset provider instance (useful for testing)."""
    global _provider_instance
    _provider_instance = None
