"""LLM client implementations."""

from .anthropic import AnthropicClient
from .client import (
    ChatOptions,
    CompletionResponse,
    LLMClient,
    Message,
    StreamChunk,
    ToolCall,
    Usage,
)
from .factory import create_llm_client
from .ollama import OllamaClient
from .openai_compat import OpenAICompatibleClient

__all__ = [
    "AnthropicClient",
    "ChatOptions",
    "CompletionResponse",
    "LLMClient",
    "Message",
    "OllamaClient",
    "OpenAICompatibleClient",
    "StreamChunk",
    "ToolCall",
    "Usage",
    "create_llm_client",
]
