"""Chat engine: wires assembly, dispatch, classification and finalization.

A call to :meth:`ChatEngine.stream` returns a :class:`ChatStream` right away.
The generation runs on its own asyncio task; display updates are read from
``ChatStream.updates()`` and the outcome from ``ChatStream.completed``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from parley.chat.cancellation import CancellationController
from parley.chat.classifier import SegmentClassifier
from parley.chat.dispatcher import DispatchStream, ResponseMetadata, StreamDispatcher
from parley.chat.recorder import FinalizationRecorder
from parley.chat.request import ProviderRequest, RequestAssembler
from parley.chat.schema import Conversation, current_millis
from parley.chat.segments import SegmentUpdate
from parley.chat.session import StreamSession
from parley.chat.store import ConversationService
from parley.config.schema import StreamConfig
from parley.errors import ProviderError
from parley.llm.client import Message
from parley.tools.activity import ToolActivityEvent
from parley.tools.base import Tool

if TYPE_CHECKING:
    from parley.config.schema import ParleyConfig
    from parley.llm.client import LLMClient
    from parley.retrieval.advisor import DocumentRetriever

logger = logging.getLogger(__name__)


@dataclass
class ChatResult:
    """Outcome of one generation."""

    conversation: Conversation
    answer: str
    metadata: ResponseMetadata | None = None
    cancelled: bool = False
    error: ProviderError | None = None


class ChatStream:
    """Handle to an in-flight generation."""

    def __init__(
        self,
        session: StreamSession,
        controller: CancellationController,
        loop: asyncio.AbstractEventLoop,
    ):
        self.session = session
        self.controller = controller
        self.completed: asyncio.Future[ChatResult] = loop.create_future()
        self._loop = loop
        self._queue: asyncio.Queue[SegmentUpdate | None] = asyncio.Queue()

    @property
    def conversation(self) -> Conversation:
        return self.controller.conversation

    def publish(self, update: SegmentUpdate | None) -> None:
        """Queue a display update. Safe to call from any thread."""
        try:
            on_loop = asyncio.get_running_loop() is self._loop
        except RuntimeError:
            on_loop = False
        if on_loop:
            self._queue.put_nowait(update)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, update)

    def cancel(self) -> bool:
        """Cancel the generation, keeping what was received so far."""
        return self.controller.cancel(self.session)

    async def updates(self) -> AsyncIterator[SegmentUpdate]:
        """Display updates in arrival order, ending when the generation ends."""
        while True:
            update = await self._queue.get()
            if update is None:
                return
            yield update

    async def wait(self) -> ChatResult:
        return await asyncio.shield(self.completed)


class ToolActivitySink:
    """Routes tool-activity events into a session and its display stream."""

    def __init__(self, classifier: SegmentClassifier, stream: ChatStream | None = None):
        self.classifier = classifier
        self.stream = stream

    def accept(self, event: ToolActivityEvent) -> None:
        update = self.classifier.accept_tool_activity(event)
        if update is not None and self.stream is not None:
            self.stream.publish(update)


class ChatEngine:
    """Runs generations for conversations held by a :class:`ConversationService`."""

    def __init__(
        self,
        dispatcher: StreamDispatcher,
        service: ConversationService,
        stream_config: StreamConfig | None = None,
        assembler: RequestAssembler | None = None,
        recorder: FinalizationRecorder | None = None,
        clock: Callable[[], int] = current_millis,
    ):
        """Initialize the engine.

        Args:
            dispatcher: Provider dispatcher
            service: Conversation lifecycle service
            stream_config: Reasoning markers and transcript format
            assembler: Request assembler
            recorder: Finalization recorder
            clock: Epoch-millisecond clock shared by sessions
        """
        self.dispatcher = dispatcher
        self.service = service
        self.stream_config = stream_config or StreamConfig()
        self.assembler = assembler or RequestAssembler()
        self.recorder = recorder or FinalizationRecorder()
        self.clock = clock

    def _classifier(self, session: StreamSession) -> SegmentClassifier:
        return SegmentClassifier(
            session,
            open_marker=self.stream_config.reasoning_open_marker,
            close_marker=self.stream_config.reasoning_close_marker,
            activity_time_format=self.stream_config.activity_time_format,
        )

    def _prepare(
        self,
        conversation: Conversation,
        prompt: str,
        retrieval_filter: str | None,
        tool_bindings: list[Tool] | None,
        sink: ToolActivitySink,
    ) -> tuple[ProviderRequest, Message]:
        """Assemble the request and append the new message pair."""
        conversation.stamp_trailing_messages(sink.classifier.session.start_timestamp)
        request = self.assembler.assemble(
            conversation,
            prompt,
            retrieval_filter=retrieval_filter,
            tool_bindings=tool_bindings,
            activity_sink=sink,
        )
        assistant = Message(role="assistant", content="")
        self.service.store.append_messages(
            conversation.id, [Message(role="user", content=prompt), assistant]
        )
        return request, assistant

    def _complete(self, conversation: Conversation) -> None:
        try:
            self.service.complete_conversation(conversation)
        except ValueError as e:
            logger.error("Failed to complete conversation %s: %s", conversation.id, e)

    def stream(
        self,
        conversation: Conversation,
        prompt: str,
        retrieval_filter: str | None = None,
        tool_bindings: list[Tool] | None = None,
    ) -> ChatStream:
        """Start a streaming generation.

        Must be called from a running event loop.

        Args:
            conversation: Conversation to continue
            prompt: User prompt
            retrieval_filter: Filter expression restricting retrieval; None skips it
            tool_bindings: Tools the model may call

        Returns:
            ChatStream handle
        """
        loop = asyncio.get_running_loop()
        session = StreamSession(conversation.id, clock=self.clock)
        classifier = self._classifier(session)
        controller = CancellationController(self.recorder, conversation)
        stream = ChatStream(session, controller, loop)
        sink = ToolActivitySink(classifier, stream)

        request, assistant = self._prepare(
            conversation, prompt, retrieval_filter, tool_bindings, sink
        )
        dispatch = self.dispatcher.dispatch(request)

        task = loop.create_task(self._consume(stream, classifier, dispatch, assistant))
        controller.task = task
        task.add_done_callback(lambda t: self._finish(t, stream, dispatch))
        return stream

    async def _consume(
        self,
        stream: ChatStream,
        classifier: SegmentClassifier,
        dispatch: DispatchStream,
        assistant: Message,
    ) -> None:
        session = stream.session
        try:
            async for delta in dispatch:
                updates = classifier.feed(delta)
                if session.closed:
                    break
                assistant.content = session.answer_text
                for update in updates:
                    stream.publish(update)
        finally:
            await dispatch.aclose()

        if dispatch.metadata is not None and not session.closed:
            self.recorder.record_response_metadata(stream.conversation, dispatch.metadata)

    def _finish(self, task: asyncio.Task, stream: ChatStream, dispatch: DispatchStream) -> None:
        """Finalize and complete the conversation however the task ended."""
        session = stream.session
        conversation = stream.conversation
        error: ProviderError | None = None

        if task.cancelled():
            # Cancelled from outside the controller, e.g. on shutdown
            stream.controller.cancel(session)
        else:
            exc = task.exception()
            if isinstance(exc, ProviderError):
                error = exc
            elif exc is not None:
                error = ProviderError(f"Generation failed: {exc}")
                error.__cause__ = exc
            if error is not None:
                logger.error(
                    "Generation failed. [conversation_id=%s] %s", conversation.id, error
                )

        self.recorder.finalize(session, conversation)
        self._complete(conversation)

        if not stream.completed.done():
            stream.completed.set_result(
                ChatResult(
                    conversation=conversation,
                    answer=session.answer_text,
                    metadata=dispatch.metadata if not session.cancelled else None,
                    cancelled=session.cancelled,
                    error=error,
                )
            )
        stream.publish(None)

    async def call(
        self,
        conversation: Conversation,
        prompt: str,
        retrieval_filter: str | None = None,
        tool_bindings: list[Tool] | None = None,
    ) -> str:
        """Run a single-shot generation.

        Inline reasoning spans are split out of the full response the same way
        a stream would be classified.

        Returns:
            The answer text

        Raises:
            ProviderError: If the provider fails; the exchange is still
                finalized with an empty answer
        """
        session = StreamSession(conversation.id, clock=self.clock)
        classifier = self._classifier(session)
        sink = ToolActivitySink(classifier)
        request, assistant = self._prepare(
            conversation, prompt, retrieval_filter, tool_bindings, sink
        )

        try:
            content, metadata = await self.dispatcher.invoke(request)
        except ProviderError as e:
            logger.error("Generation failed. [conversation_id=%s] %s", conversation.id, e)
            self.recorder.finalize(session, conversation)
            self._complete(conversation)
            raise

        classifier.feed_text(content)
        assistant.content = session.answer_text
        self.recorder.record_response_metadata(conversation, metadata)
        self.recorder.finalize(session, conversation)
        self._complete(conversation)
        return session.answer_text


def create_engine(
    config: ParleyConfig,
    llm: LLMClient | None = None,
    retriever: DocumentRetriever | None = None,
    service: ConversationService | None = None,
) -> ChatEngine:
    """Build a chat engine from configuration.

    Args:
        config: Parley configuration
        llm: Provider client; built from ``config.provider`` when omitted
        retriever: Retrieval backend; without one, retrieval filters are ignored
        service: Conversation service; built with file persistence when enabled

    Returns:
        Configured ChatEngine
    """
    from parley.chat.persistence import ConversationPersistence
    from parley.llm.factory import create_llm_client
    from parley.retrieval.advisor import RetrievalAdvisor

    if llm is None:
        llm = create_llm_client(config)

    advisor = None
    if retriever is not None:
        advisor = RetrievalAdvisor(retriever, prompt_template=config.retrieval.prompt_template)

    if service is None:
        persistence = None
        if config.persistence.enabled:
            persistence = ConversationPersistence(config.persistence.home_dir)
        service = ConversationService(persistence=persistence)

    dispatcher = StreamDispatcher(
        llm,
        advisor=advisor,
        max_tool_rounds=config.stream.max_tool_rounds,
    )
    return ChatEngine(dispatcher, service, stream_config=config.stream)
