"""Storage provider registry keyed by provider discriminator."""

import logging
from typing import Callable, Optional

from ...errors import StorageError
from .ports import StoragePort

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[dict], StoragePort]


class StorageRegistry:
    """Resolves a StoragePort for a provider name and target config.

    Adding a provider is registering a factory; callers never branch on the
    provider name themselves.

    Example:
        registry = StorageRegistry()
        registry.register("local", lambda cfg: LocalStorageAdapter(cfg.get("root", "./data")))
        adapter = registry.get("local", target.config_json)
    """

    def __init__(self):
        self._factories: dict[str, AdapterFactory] = {}
        self._instances: dict[tuple, StoragePort] = {}

    def register(self, provider: str, factory: AdapterFactory) -> None:
        self._factories[provider] = factory
        self._instances = {k: v for k, v in self._instances.items() if k[0] != provider}

    def providers(self) -> list[str]:
        return sorted(self._factories)

    def get(self, provider: str, config: Optional[dict] = None) -> StoragePort:
        """Return the adapter for a provider.

        Raises:
            StorageError: If no adapter is registered for the provider
        """
        factory = self._factories.get(provider)
        if factory is None:
            raise StorageError(
                f"No storage adapter registered for provider '{provider}'",
                {"provider": provider, "registered": self.providers()},
            )
        config = config or {}
        key = (provider, tuple(sorted((k, str(v)) for k, v in config.items())))
        if key not in self._instances:
            self._instances[key] = factory(config)
        return self._instances[key]
