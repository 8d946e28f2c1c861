"""Exchange provider adapters."""

from blockhaven.providers.base import ExchangeProvider, ProviderError
from blockhaven.providers.changenow import ChangeNowProvider
from blockhaven.providers.dryrun import DryRunProvider
from blockhaven.providers.factory import get_provider, reset_provider

__all__ = [
    "ExchangeProvider",
    "ProviderError",
    "ChangeNowProvider",
    "DryRunProvider",
    "get_provider",
    "reset_provider",
]
