"""Stream dispatch: runs a request against the provider.

Retrieval and tool round-trips happen here; classification does not. Tool
activity goes to the request's sink, never into the delta sequence. Provider
failures end the sequence with :class:`ProviderError` and are not retried.
"""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from parley.chat.request import ProviderRequest
from parley.errors import ProviderError
from parley.llm.client import LLMClient, Message, StreamChunk, ToolCall, Usage
from parley.retrieval.advisor import Document, RetrievalAdvisor
from parley.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


@dataclass
class ResponseMetadata:
    """Final metadata of a generation."""

    model: str | None = None
    usage: Usage = field(default_factory=Usage)
    retrieved_documents: list[Document] = field(default_factory=list)

    @property
    def document_ids(self) -> list[str]:
        return [document.id for document in self.retrieved_documents]


class DispatchStream:
    """Async iterator of content deltas for one request.

    ``metadata`` is set once the provider finishes normally; it stays None if
    iteration stops early or fails.
    """

    def __init__(self, dispatcher: "StreamDispatcher", request: ProviderRequest):
        self._dispatcher = dispatcher
        self._request = request
        self._iterator: AsyncIterator[str] | None = None
        self.metadata: ResponseMetadata | None = None

    def __aiter__(self) -> AsyncIterator[str]:
        if self._iterator is None:
            self._iterator = self._run()
        return self._iterator

    async def aclose(self) -> None:
        if self._iterator is not None:
            await self._iterator.aclose()

    async def _run(self) -> AsyncIterator[str]:
        dispatcher = self._dispatcher
        request = self._request
        messages = [Message(role=m.role, content=m.content) for m in request.messages]
        documents = await dispatcher.advise(messages, request)

        terminal: StreamChunk | None = None
        model: str | None = None
        usage = Usage()

        for round_index in range(dispatcher.max_tool_rounds + 1):
            tools = request.tool_schemas() if round_index < dispatcher.max_tool_rounds else []
            tool_calls: list[ToolCall] | None = None
            round_usage: Usage | None = None

            try:
                async for chunk in dispatcher.llm.stream_complete(
                    messages, tools=tools or None, options=request.options
                ):
                    if chunk.model:
                        model = chunk.model
                    if chunk.usage is not None:
                        round_usage = chunk.usage
                    if chunk.tool_calls:
                        tool_calls = chunk.tool_calls
                    if chunk.content:
                        terminal = chunk
                        yield chunk.content
            except ProviderError:
                raise
            except Exception as e:
                raise ProviderError(f"Provider stream failed: {e}") from e

            if round_usage is not None:
                usage = usage + round_usage

            if not tool_calls or not request.tool_bindings:
                break

            messages.extend(
                await dispatcher.executor.execute_tool_calls(
                    messages, tool_calls, request.tool_bindings, request.activity_sink
                )
            )

        self.metadata = ResponseMetadata(
            model=(terminal.model if terminal is not None and terminal.model else model),
            usage=usage,
            retrieved_documents=documents,
        )


class StreamDispatcher:
    """Invokes the provider in streaming or single-shot mode."""

    def __init__(
        self,
        llm: LLMClient,
        advisor: RetrievalAdvisor | None = None,
        executor: ToolExecutor | None = None,
        max_tool_rounds: int = 5,
    ):
        """Initialize the dispatcher.

        Args:
            llm: Provider client
            advisor: Retrieval advisor; without one, filters are ignored
            executor: Tool-call executor
            max_tool_rounds: Tool round-trips allowed before tools are withheld
        """
        self.llm = llm
        self.advisor = advisor
        self.executor = executor or ToolExecutor()
        self.max_tool_rounds = max_tool_rounds

    async def advise(self, messages: list[Message], request: ProviderRequest) -> list[Document]:
        """Run retrieval for the request, augmenting ``messages`` in place."""
        if request.retrieval_filter is None:
            logger.debug("Document retrieval was skipped.")
            return []
        if self.advisor is None:
            logger.warning("Retrieval filter given but no retrieval advisor is configured.")
            return []
        try:
            return await self.advisor.advise(messages, request.advisor_params)
        except Exception as e:
            raise ProviderError(f"Document retrieval failed: {e}") from e

    def dispatch(self, request: ProviderRequest) -> DispatchStream:
        """Start a streaming generation.

        Args:
            request: Assembled request

        Returns:
            DispatchStream yielding content deltas
        """
        return DispatchStream(self, request)

    async def invoke(self, request: ProviderRequest) -> tuple[str, ResponseMetadata]:
        """Run a single-shot generation.

        Args:
            request: Assembled request

        Returns:
            Tuple of (full content, response metadata)
        """
        messages = [Message(role=m.role, content=m.content) for m in request.messages]
        documents = await self.advise(messages, request)
        usage = Usage()
        round_index = 0

        while True:
            tools = request.tool_schemas() if round_index < self.max_tool_rounds else []
            try:
                response = await self.llm.complete(
                    messages, tools=tools or None, options=request.options
                )
            except ProviderError:
                raise
            except Exception as e:
                raise ProviderError(f"Provider call failed: {e}") from e

            if response.usage is not None:
                usage = usage + response.usage

            if (
                not response.tool_calls
                or not request.tool_bindings
                or round_index >= self.max_tool_rounds
            ):
                break

            messages.extend(
                await self.executor.execute_tool_calls(
                    messages, response.tool_calls, request.tool_bindings, request.activity_sink
                )
            )
            round_index += 1

        return response.content, ResponseMetadata(
            model=response.model,
            usage=usage,
            retrieved_documents=documents,
        )
