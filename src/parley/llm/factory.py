"""Factory function for creating LLM clients from configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from parley.llm.anthropic import AnthropicClient
from parley.llm.ollama import OllamaClient
from parley.llm.openai_compat import OpenAICompatibleClient

if TYPE_CHECKING:
    from parley.config.schema import ParleyConfig
    from parley.llm.client import LLMClient


def create_llm_client(config: ParleyConfig) -> LLMClient:
    """Create an LLM client based on configuration.

    Reads ``config.provider.backend`` and returns the appropriate client
    instance, configured from the corresponding backend-specific section.

    Args:
        config: Parley configuration.

    Returns:
        An LLM client for the configured backend.

    Raises:
        ValueError: If the backend is not recognised.
    """
    provider = config.provider
    backend = provider.backend

    if backend == "ollama":
        return OllamaClient(
            model=provider.model,
            base_url=provider.ollama.host + "/v1",
            timeout=provider.ollama.timeout,
            temperature=provider.temperature,
        )
    elif backend == "openai":
        return OpenAICompatibleClient(
            model=provider.model,
            base_url=provider.openai.base_url,
            api_key=provider.openai.api_key or os.environ.get("OPENAI_API_KEY", "none"),
            timeout=provider.openai.timeout,
            temperature=provider.temperature,
        )
    elif backend == "anthropic":
        return AnthropicClient(
            api_key=provider.anthropic.api_key or os.environ.get("ANTHROPIC_API_KEY", ""),
            model=provider.model,
            max_tokens=provider.anthropic.max_tokens,
            timeout=provider.anthropic.timeout,
            temperature=provider.temperature,
            base_url=provider.anthropic.base_url,
            reasoning_markers=(
                config.stream.reasoning_open_marker,
                config.stream.reasoning_close_marker,
            ),
        )
    else:
        raise ValueError(f"Unknown provider backend: {backend}")
