"""API routes for the parley server."""

import json
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sse_starlette.sse import EventSourceResponse

from parley.chat.engine import ChatEngine, ChatStream
from parley.chat.replay import replay
from parley.chat.schema import Conversation
from parley.config.schema import ParleyConfig
from parley.errors import ConversationNotFoundError, ProviderError
from parley.llm.client import ChatOptions
from parley.retrieval.advisor import build_filter_expression


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    model: str
    version: str


class CreateConversationRequest(_CamelModel):
    """Request body for creating a conversation."""

    system_prompt: str | None = None
    options: ChatOptions | None = None


class PromptRequest(_CamelModel):
    """Request body for stream and call endpoints."""

    prompt: str
    document_ids: list[str] = Field(default_factory=list)


class SegmentResponse(_CamelModel):
    kind: str
    text: str
    opened_at: int


class MessageResponse(_CamelModel):
    role: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    segments: list[SegmentResponse] = Field(default_factory=list)


class ConversationSummary(_CamelModel):
    conversation_id: str
    title: str | None = None
    create_timestamp: int
    update_timestamp: int


class ConversationResponse(ConversationSummary):
    system_prompt: str | None = None
    chat_options: ChatOptions = Field(default_factory=ChatOptions)
    messages: list[MessageResponse] = Field(default_factory=list)


class CallResponse(_CamelModel):
    conversation_id: str
    answer: str


def _summary(conversation: Conversation) -> ConversationSummary:
    return ConversationSummary(
        conversation_id=conversation.id,
        title=conversation.title,
        create_timestamp=conversation.create_timestamp,
        update_timestamp=conversation.update_timestamp,
    )


def _detail(conversation: Conversation, config: ParleyConfig) -> ConversationResponse:
    messages = []
    for message in conversation.messages:
        segments = []
        if message.role == "assistant":
            segments = [
                SegmentResponse(kind=s.kind.value, text=s.text, opened_at=s.opened_at)
                for s in replay(
                    message,
                    config.stream.reasoning_open_marker,
                    config.stream.reasoning_close_marker,
                )
            ]
        messages.append(
            MessageResponse(
                role=message.role,
                content=message.content,
                metadata=message.metadata,
                segments=segments,
            )
        )
    return ConversationResponse(
        **_summary(conversation).model_dump(),
        system_prompt=conversation.system_prompt,
        chat_options=conversation.options,
        messages=messages,
    )


def create_router(config: ParleyConfig, engine: ChatEngine) -> APIRouter:
    """Create API router backed by a chat engine.

    Args:
        config: Parley configuration
        engine: Chat engine serving the conversations

    Returns:
        Configured API router
    """
    router = APIRouter()
    service = engine.service

    # Created conversations enter the service once their first exchange completes
    drafts: dict[str, Conversation] = {}
    active: dict[str, ChatStream] = {}
    # Conversations with a single-shot call in flight
    calling: set[str] = set()

    def resolve(conversation_id: str) -> Conversation:
        try:
            conversation = service.get_conversation(conversation_id)
        except ConversationNotFoundError:
            conversation = drafts.get(conversation_id)
            if conversation is None:
                raise HTTPException(
                    status_code=404, detail=f"Conversation not found: {conversation_id}"
                ) from None
            return conversation
        drafts.pop(conversation_id, None)
        return conversation

    def retrieval_filter(request: PromptRequest) -> str | None:
        return build_filter_expression(request.document_ids, config.retrieval.document_id_field)

    def ensure_idle(conversation_id: str) -> None:
        if conversation_id in active or conversation_id in calling:
            raise HTTPException(
                status_code=409, detail="A response is already being generated"
            )

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        from parley import __version__

        return HealthResponse(
            status="healthy",
            model=config.provider.model,
            version=__version__,
        )

    @router.post("/conversations", response_model=ConversationSummary, status_code=201)
    async def create_conversation(request: CreateConversationRequest) -> ConversationSummary:
        """Create an empty conversation."""
        system_prompt = request.system_prompt
        if system_prompt is None:
            system_prompt = config.chat.system_prompt
        conversation = service.create_conversation(
            system_prompt, request.options or config.chat.options
        )
        drafts[conversation.id] = conversation
        return _summary(conversation)

    @router.get("/conversations", response_model=list[ConversationSummary])
    async def list_conversations() -> list[ConversationSummary]:
        """List stored conversations, most recently updated first."""
        return [_summary(c) for c in service.list_conversations()]

    @router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
    async def get_conversation(conversation_id: str) -> ConversationResponse:
        """Get a conversation with replayed message segments."""
        return _detail(resolve(conversation_id), config)

    @router.delete("/conversations/{conversation_id}", status_code=204)
    async def delete_conversation(conversation_id: str) -> None:
        """Delete a conversation from memory and disk."""
        ensure_idle(conversation_id)
        conversation = resolve(conversation_id)
        drafts.pop(conversation_id, None)
        service.delete_conversation(conversation)

    @router.post("/conversations/{conversation_id}/stream")
    async def stream(conversation_id: str, request: PromptRequest) -> EventSourceResponse:
        """Stream a response as Server-Sent Events.

        Emits ``segment`` events for display updates, then ``done`` with the
        response metadata or ``error`` when the provider failed.
        """
        conversation = resolve(conversation_id)
        ensure_idle(conversation_id)
        chat_stream = engine.stream(conversation, request.prompt, retrieval_filter(request))
        active[conversation_id] = chat_stream

        async def event_generator() -> Any:
            """Generate SSE events."""
            try:
                async for update in chat_stream.updates():
                    yield {"event": "segment", "data": json.dumps(update.to_dict())}

                result = await chat_stream.wait()
                if result.error is not None:
                    yield {"event": "error", "data": str(result.error)}
                else:
                    metadata = result.metadata
                    yield {
                        "event": "done",
                        "data": json.dumps(
                            {
                                "conversationId": conversation_id,
                                "cancelled": result.cancelled,
                                "model": metadata.model if metadata else None,
                                "retrievedDocumentIds": metadata.document_ids if metadata else [],
                            }
                        ),
                    }
            finally:
                # Client went away mid-stream
                if not chat_stream.completed.done():
                    chat_stream.cancel()
                active.pop(conversation_id, None)

        return EventSourceResponse(event_generator())

    @router.post("/conversations/{conversation_id}/cancel")
    async def cancel(conversation_id: str) -> dict[str, bool]:
        """Cancel the in-flight response of a conversation."""
        chat_stream = active.get(conversation_id)
        if chat_stream is None:
            return {"cancelled": False}
        return {"cancelled": chat_stream.cancel()}

    @router.post("/conversations/{conversation_id}/call", response_model=CallResponse)
    async def call(conversation_id: str, request: PromptRequest) -> CallResponse:
        """Generate a complete response without streaming."""
        conversation = resolve(conversation_id)
        ensure_idle(conversation_id)
        calling.add(conversation_id)
        try:
            answer = await engine.call(conversation, request.prompt, retrieval_filter(request))
        except ProviderError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        finally:
            calling.discard(conversation_id)
        return CallResponse(conversation_id=conversation_id, answer=answer)

    return router
