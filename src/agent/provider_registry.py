"""CompletionProviderRegistry: per-backend completion clients.

Built once at startup from Settings; read-only afterwards.
Callers look up a client by provider name or take the configured default.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from src.agent.model_client import (
    CompletionClient,
    OllamaCompletionClient,
    OpenAICompletionClient,
)

if TYPE_CHECKING:
    from src.config.settings import Settings

logger = structlog.get_logger()


@dataclass
class ProviderEntry:
    """A registered completion backend."""

    name: str
    client: CompletionClient
    model: str  # provider default model (for logging/reporting)


class CompletionProviderRegistry:
    """Registry of completion clients keyed by provider name."""

    def __init__(self, default_provider: str) -> None:
        self._providers: dict[str, ProviderEntry] = {}
        self._default = default_provider

    def register(self, name: str, client: CompletionClient, model: str) -> None:
        self._providers[name] = ProviderEntry(name=name, client=client, model=model)

    def get(self, name: str | None = None) -> ProviderEntry:
        """Get provider by name, or default if None.

        Raises KeyError if not found or not configured.
        """
        key = name or self._default
        if key not in self._providers:
            msg = f"Provider '{key}' not registered or not configured"
            raise KeyError(msg)
        return self._providers[key]

    @property
    def default_name(self) -> str:
        return self._default

    def available_providers(self) -> list[str]:
        return list(self._providers.keys())


def build_provider_registry(settings: Settings) -> CompletionProviderRegistry:
    """Register every configured backend and validate the active one."""
    registry = CompletionProviderRegistry(default_provider=settings.provider.active)

    # OpenAI only when api_key is non-empty
    if settings.openai.api_key:
        registry.register(
            "openai",
            OpenAICompletionClient(
                api_key=settings.openai.api_key,
                base_url=settings.openai.base_url,
                model=settings.openai.model,
            ),
            settings.openai.model,
        )

    # Ollama needs no credentials; reachability is only known at call time
    registry.register(
        "ollama",
        OllamaCompletionClient(model=settings.ollama.model, host=settings.ollama.host),
        settings.ollama.model,
    )

    try:
        registry.get()
    except KeyError as e:
        raise RuntimeError(
            f"Active provider '{settings.provider.active}' is not configured. "
            "Check API key settings."
        ) from e

    logger.info(
        "providers_registered",
        active=registry.default_name,
        available=registry.available_providers(),
    )
    return registry
