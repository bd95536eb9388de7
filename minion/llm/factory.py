"""Adapter construction from a provider name."""

import logging

import httpx

from minion.core.errors import ValidationError
from minion.llm.aliases import resolve_provider
from minion.llm.anthropic import AnthropicAdapter
from minion.llm.base import HTTPAdapter, LLMConfig
from minion.llm.ollama import OllamaAdapter
from minion.llm.openai import OpenAIAdapter
from minion.llm.zhipu import ZhipuAdapter

logger = logging.getLogger(__name__)

ADAPTERS: dict[str, type[HTTPAdapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "zai": ZhipuAdapter,
    "ollama": OllamaAdapter,
}


def create_llm_adapter(config: LLMConfig, client: httpx.Client | None = None) -> HTTPAdapter:
    """Resolve provider aliases and build the matching adapter.

    Raises:
        ValidationError: If the provider is unknown
    """
    resolved = resolve_provider(config.provider, config.base_url)
    adapter_cls = ADAPTERS.get(resolved.provider)
    if adapter_cls is None:
        raise ValidationError(
            f"Unknown LLM provider: {config.provider}. "
            f"Expected one of: {', '.join(sorted(ADAPTERS))}"
        )

    resolved_config = config.model_copy(
        update={"provider": resolved.provider, "base_url": resolved.base_url}
    )
    logger.info(
        f"Using {resolved.provider} model {config.model}"
        + (f" at {resolved.base_url}" if resolved.base_url else "")
    )
    return adapter_cls(resolved_config, client=client)
