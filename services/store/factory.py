"""Factory for creating invoice stores based on configuration.

Maps the configured provider name to its InvoiceStore implementation.
"""

import logging

from services.shared.config import Settings
from services.store.base import InvoiceStore
from services.store.memory import MemoryInvoiceStore
from services.store.rest import RestInvoiceStore

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry of available invoice store providers.

    Maps the names accepted by ``Settings.store_provider`` to their
    implementation classes.
    """

    _providers: dict[str, type[InvoiceStore]] = {
        "rest": RestInvoiceStore,
        "memory": MemoryInvoiceStore,
    }

    @classmethod
    def get_provider_class(cls, name: str) -> type[InvoiceStore]:
        """Get provider class by name.

        Raises:
            ValueError: If provider not found in registry
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(
                f"Unknown invoice store provider: '{name}'. Available providers: {available}"
            )
        return cls._providers[name]

    @classmethod
    def list_providers(cls) -> list[str]:
        return list(cls._providers.keys())


def create_invoice_store(settings: Settings) -> InvoiceStore:
    """Create the invoice store selected by ``settings.store_provider``.

    Logs a warning when the REST store has no API key configured.

    Args:
        settings: Application settings

    Returns:
        Configured invoice store

    Raises:
        ValueError: If configured provider is unknown
    """
    provider_name = settings.store_provider
    provider_class = ProviderRegistry.get_provider_class(provider_name)
    store = provider_class(settings)

    if provider_name == "rest" and not settings.store_api_key:
        logger.warning(
            "Invoice store 'rest' has no API key. Set APP_STORE_API_KEY environment variable."
        )

    logger.info(f"Created invoice store: {provider_name}")
    return store
