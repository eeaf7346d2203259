"""Request assembly: conversation state to a provider-agnostic request."""

from dataclasses import dataclass, field
from typing import Any

from parley.chat.schema import CONVERSATION_ID, Conversation
from parley.llm.client import ChatOptions, Message
from parley.retrieval.advisor import RAG_FILTER_EXPRESSION
from parley.tools.activity import ActivitySink
from parley.tools.base import Tool

TOOL_ACTIVITY_SINK = "toolActivitySink"


@dataclass
class ProviderRequest:
    """Everything the dispatcher needs to run one generation."""

    messages: list[Message]
    options: ChatOptions = field(default_factory=ChatOptions)
    advisor_params: dict[str, Any] = field(default_factory=dict)
    tool_bindings: list[Tool] = field(default_factory=list)
    tool_context: dict[str, Any] = field(default_factory=dict)

    @property
    def user_prompt(self) -> str:
        last_user = next((m for m in reversed(self.messages) if m.role == "user"), None)
        return last_user.content if last_user is not None else ""

    @property
    def retrieval_filter(self) -> str | None:
        return self.advisor_params.get(RAG_FILTER_EXPRESSION)

    @property
    def activity_sink(self) -> ActivitySink | None:
        return self.tool_context.get(TOOL_ACTIVITY_SINK)

    def tool_schemas(self) -> list[dict[str, Any]]:
        return [tool.schema.to_openai_format() for tool in self.tool_bindings]


class RequestAssembler:
    """Builds provider requests. Pure data transformation, no side effects."""

    def assemble(
        self,
        conversation: Conversation,
        user_prompt: str,
        retrieval_filter: str | None = None,
        tool_bindings: list[Tool] | None = None,
        activity_sink: ActivitySink | None = None,
    ) -> ProviderRequest:
        """Assemble a request for a new user prompt.

        Args:
            conversation: Conversation the prompt belongs to (before the new
                message pair is appended)
            user_prompt: The prompt being submitted
            retrieval_filter: Filter expression; blank or None skips retrieval
            tool_bindings: Tools the model may call
            activity_sink: Receiver of tool-activity events

        Returns:
            ProviderRequest ready for dispatch
        """
        messages: list[Message] = []
        if conversation.system_prompt and conversation.system_prompt.strip():
            messages.append(Message(role="system", content=conversation.system_prompt))

        for message in conversation.messages:
            if message.role in ("user", "assistant") and message.content:
                messages.append(Message(role=message.role, content=message.content))

        messages.append(Message(role="user", content=user_prompt))

        advisor_params: dict[str, Any] = {CONVERSATION_ID: conversation.id}
        if retrieval_filter and retrieval_filter.strip():
            advisor_params[RAG_FILTER_EXPRESSION] = retrieval_filter

        tool_context: dict[str, Any] = {}
        bindings = list(tool_bindings or [])
        if bindings:
            tool_context[TOOL_ACTIVITY_SINK] = activity_sink

        return ProviderRequest(
            messages=messages,
            options=conversation.options.model_copy(),
            advisor_params=advisor_params,
            tool_bindings=bindings,
            tool_context=tool_context,
        )
