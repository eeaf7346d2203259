"""Pydantic models for parley.yaml configuration."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from parley.llm.client import ChatOptions

DEFAULT_RAG_PROMPT_TEMPLATE = """Context information is below.

---------------------
{context}
---------------------

Given the context information and no prior knowledge, answer the query.

Follow these rules:

1. If the answer is not in the context, just say that you don't know.
2. Avoid statements like "Based on the context..." or "The provided information...".

Query: {query}

Answer:
"""


class OpenAIConfig(BaseModel):
    """OpenAI (or any OpenAI-compatible server) configuration."""

    base_url: str = Field(default="https://api.openai.com/v1", description="API endpoint with /v1")
    api_key: str | None = Field(default=None, description="API key (falls back to OPENAI_API_KEY)")
    timeout: int = Field(default=120, description="Request timeout in seconds", ge=1)


class OllamaConfig(BaseModel):
    """Ollama server configuration."""

    host: str = Field(default="http://localhost:11434", description="Ollama server URL")
    timeout: int = Field(default=120, description="Request timeout in seconds", ge=1)


class AnthropicConfig(BaseModel):
    """Anthropic Messages API configuration."""

    base_url: str = Field(default="https://api.anthropic.com", description="API base URL")
    api_key: str | None = Field(default=None, description="API key (falls back to ANTHROPIC_API_KEY)")
    timeout: int = Field(default=120, description="Request timeout in seconds", ge=1)
    max_tokens: int = Field(default=4096, description="Default max tokens per response", ge=1)


class ProviderConfig(BaseModel):
    """LLM provider configuration."""

    backend: Literal["openai", "ollama", "anthropic"] = Field(
        default="ollama",
        description="Provider backend to use",
    )
    model: str = Field(default="qwen3:8b", description="Default model name")
    temperature: float = Field(default=0.7, description="Default sampling temperature", ge=0.0, le=2.0)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)


class ChatConfig(BaseModel):
    """Defaults for new conversations."""

    system_prompt: str = Field(
        default="You are a helpful assistant.",
        description="System prompt given to new conversations",
    )
    models: list[str] = Field(
        default_factory=list,
        description="Models offered for selection in conversation settings",
    )
    options: ChatOptions = Field(
        default_factory=ChatOptions,
        description="Default sampling options copied into new conversations",
    )


class StreamConfig(BaseModel):
    """Streaming engine configuration."""

    reasoning_open_marker: str = Field(default="<think>", description="Delta prefix opening reasoning")
    reasoning_close_marker: str = Field(
        default="</think>", description="Delta suffix closing reasoning"
    )
    max_tool_rounds: int = Field(
        default=5,
        description="Tool call round-trips allowed per generation before tools are withheld",
        ge=0,
        le=50,
    )
    activity_time_format: str = Field(
        default="%Y-%m-%dT%H:%M:%S",
        description="strftime format used for tool-activity transcript entries",
    )


class RetrievalConfig(BaseModel):
    """Retrieval advisor configuration."""

    document_id_field: str = Field(
        default="docInfoId",
        description="Metadata field used when building document filter expressions",
    )
    prompt_template: str = Field(
        default=DEFAULT_RAG_PROMPT_TEMPLATE,
        description="Template used to augment the user prompt; receives {context} and {query}",
    )


class PersistenceConfig(BaseModel):
    """Conversation persistence configuration."""

    home_dir: Path = Field(
        default=Path.home() / ".parley",
        description="Root directory; conversations are saved under chat/save",
    )
    enabled: bool = Field(default=True, description="Load on start and save on shutdown")


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins (use ['*'] for development only)",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Root log level"
    )


class ParleyConfig(BaseModel):
    """Root configuration model for parley.yaml."""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
