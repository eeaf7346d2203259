"""Ollama LLM client using the OpenAI-compatible API."""

from parley.llm.openai_compat import OpenAICompatibleClient


class OllamaClient(OpenAICompatibleClient):
    """LLM client that wraps Ollama's OpenAI-compatible API.

    Reasoning models served by Ollama (qwen3, deepseek-r1) emit their
    deliberation inline between ``<think>`` and ``</think>`` deltas, which is
    what the segment classifier expects.
    """

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434/v1",
        timeout: int = 120,
        temperature: float = 0.7,
    ) -> None:
        """Initialize Ollama client.

        Args:
            model: Model name (e.g., "qwen3:8b")
            base_url: Ollama OpenAI-compatible endpoint
            timeout: Request timeout in seconds
            temperature: Default sampling temperature
        """
        super().__init__(
            model=model,
            base_url=base_url,
            api_key="ollama",  # Ollama doesn't use API keys but SDK requires one
            timeout=timeout,
            temperature=temperature,
        )
