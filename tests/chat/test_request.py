"""Tests for request assembly."""

from parley.chat.request import TOOL_ACTIVITY_SINK, RequestAssembler
from parley.chat.schema import CONVERSATION_ID, Conversation
from parley.llm.client import ChatOptions, Message
from parley.retrieval.advisor import RAG_FILTER_EXPRESSION
from parley.tools.base import Tool, ToolSchema


class RecordingSink:
    def __init__(self):
        self.events = []

    def accept(self, event):
        self.events.append(event)


def _conversation(system_prompt=None, messages=None, options=None) -> Conversation:
    history = messages or []
    return Conversation(
        id="Chat-abc",
        create_timestamp=1,
        update_timestamp=1,
        system_prompt=system_prompt,
        options=options or ChatOptions(),
        messages_loader=lambda: history,
    )


def test_system_prompt_history_and_prompt():
    history = [
        Message(role="user", content="Hi"),
        Message(role="assistant", content="Hello!"),
        Message(role="assistant", content=""),
    ]
    request = RequestAssembler().assemble(_conversation("Be kind.", history), "How are you?")

    assert [(m.role, m.content) for m in request.messages] == [
        ("system", "Be kind."),
        ("user", "Hi"),
        ("assistant", "Hello!"),
        ("user", "How are you?"),
    ]
    assert request.user_prompt == "How are you?"


def test_blank_system_prompt_is_omitted():
    request = RequestAssembler().assemble(_conversation("   "), "Hi")

    assert [m.role for m in request.messages] == ["user"]


def test_advisor_params():
    assembler = RequestAssembler()

    plain = assembler.assemble(_conversation(), "Hi", retrieval_filter="  ")
    filtered = assembler.assemble(_conversation(), "Hi", retrieval_filter="docInfoId in ['a']")

    assert plain.advisor_params == {CONVERSATION_ID: "Chat-abc"}
    assert plain.retrieval_filter is None
    assert filtered.advisor_params[RAG_FILTER_EXPRESSION] == "docInfoId in ['a']"


def test_sink_only_attached_with_tool_bindings():
    sink = RecordingSink()
    tool = Tool(schema=ToolSchema(name="t", description="d", parameters=[]), fn=lambda: "")
    assembler = RequestAssembler()

    without_tools = assembler.assemble(_conversation(), "Hi", activity_sink=sink)
    with_tools = assembler.assemble(_conversation(), "Hi", tool_bindings=[tool], activity_sink=sink)

    assert without_tools.tool_context == {}
    assert without_tools.activity_sink is None
    assert with_tools.tool_context[TOOL_ACTIVITY_SINK] is sink
    assert with_tools.tool_schemas()[0]["function"]["name"] == "t"


def test_options_are_copied():
    options = ChatOptions(model="llama3", temperature=0.2, top_k=40)
    conversation = _conversation(options=options)

    request = RequestAssembler().assemble(conversation, "Hi")
    request.options.temperature = 1.5

    assert request.options.model == "llama3"
    assert request.options.top_k == 40
    assert conversation.options.temperature == 0.2
