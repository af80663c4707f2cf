"""Adapter registry with health-checked primary/fallback selection."""

import asyncio
import logging
from typing import Dict, List, Optional, Type

from ..errors import ConfigurationError, ProviderUnavailableError
from .config import AdapterConfig, ProviderConfig
from .providers import (
    AgentRouterAdapter,
    BaseLLMAdapter,
    BedrockAdapter,
    GeminiAdapter,
    GLMAdapter,
    MockAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
)
from .usage_tracker import CostLedger

logger = logging.getLogger(__name__)

ADAPTER_TYPES: Dict[str, Type[BaseLLMAdapter]] = {
    "openai": OpenAIAdapter,
    "gemini": GeminiAdapter,
    "glm": GLMAdapter,
    "openrouter": OpenRouterAdapter,
    "agentrouter": AgentRouterAdapter,
    "bedrock": BedrockAdapter,
    "mock": MockAdapter,
}


class AdapterFactory:
    """Builds one adapter per configured provider and routes requests.

    The adapter map is populated once in ``__init__`` and only read afterwards.
    Health is probed on every ``get_primary_adapter`` call; nothing is cached.
    """

    def __init__(
        self,
        config: AdapterConfig,
        ledger: Optional[CostLedger] = None,
        adapters: Optional[Dict[str, BaseLLMAdapter]] = None,
    ):
        """Initialize factory.

        Args:
            config: Adapter configuration
            ledger: Cost ledger handed to every adapter
            adapters: Pre-built adapters keyed by provider name (skips construction)

        Raises:
            ConfigurationError: If the primary provider is not configured or a
                provider name is unknown
        """
        self.config = config
        self.ledger = ledger
        self._adapters: Dict[str, BaseLLMAdapter] = (
            dict(adapters) if adapters is not None else self._initialize_adapters()
        )

        if config.primary_provider not in self._adapters:
            raise ConfigurationError(
                f"Primary provider '{config.primary_provider}' is not configured. "
                f"Please add configuration for this provider."
            )

        logger.info(f"Registered LLM adapters: {', '.join(self._adapters)}")

    def _initialize_adapters(self) -> Dict[str, BaseLLMAdapter]:
        adapters = {}
        for name, provider_config in self.config.providers.items():
            adapters[name] = self.create_adapter(name, provider_config)
        return adapters

    def create_adapter(self, name: str, provider_config: ProviderConfig) -> BaseLLMAdapter:
        adapter_class = ADAPTER_TYPES.get(name)
        if adapter_class is None:
            raise ConfigurationError(
                f"Unknown provider: {name} (available: {', '.join(sorted(ADAPTER_TYPES))})"
            )

        return adapter_class(
            provider_config,
            ledger=self.ledger,
            health_check_timeout=self.config.health_check_timeout,
            request_timeout=self.config.request_timeout,
        )

    def get_adapter(self, name: str) -> BaseLLMAdapter:
        """Look up a registered adapter by provider name.

        Raises:
            ProviderUnavailableError: If no adapter is registered under the name
        """
        adapter = self._adapters.get(name)
        if adapter is None:
            raise ProviderUnavailableError(f"Provider {name} not available", provider=name)
        return adapter

    async def get_primary_adapter(self) -> BaseLLMAdapter:
        """Return the first healthy adapter, preferring the primary.

        Fallbacks are tried in declared order. If nothing is healthy the
        primary is returned anyway and the caller's request surfaces the
        real error.
        """
        primary_name = self.config.primary_provider
        primary = self.get_adapter(primary_name)

        if await primary.health_check():
            return primary

        logger.warning(f"Primary provider {primary_name} is unhealthy, trying fallbacks")

        for name in self.config.fallback_providers:
            try:
                adapter = self.get_adapter(name)
            except ProviderUnavailableError as e:
                logger.warning(f"Fallback provider {name} failed: {e}")
                continue

            if await adapter.health_check():
                logger.info(f"Using fallback provider: {name}")
                return adapter

            logger.warning(f"Fallback provider {name} is unhealthy")

        logger.error("All providers are unhealthy, using primary anyway")
        return primary

    async def health_check_all(self) -> Dict[str, bool]:
        """Probe every registered adapter concurrently."""
        names = list(self._adapters)
        results = await asyncio.gather(*(self._adapters[n].health_check() for n in names))
        return dict(zip(names, results))

    def registered_providers(self) -> List[str]:
        return list(self._adapters)

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()
