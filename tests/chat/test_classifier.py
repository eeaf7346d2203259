"""Tests for the segment classifier."""

import threading

from conftest import CounterClock

from parley.chat.classifier import (
    ClassifierState,
    Effect,
    SegmentClassifier,
    split_marked_text,
    transition,
)
from parley.chat.segments import SegmentKind
from parley.chat.session import StreamSession, StreamState
from parley.tools.activity import ToolCallInfo, ToolCallIssued, ToolResult, UserEcho


def _classifier() -> SegmentClassifier:
    return SegmentClassifier(StreamSession("Chat-test", clock=CounterClock()))


def test_open_marker_enters_thinking_without_output():
    result = transition(ClassifierState(), "<think>")

    assert result.state.mode is StreamState.THINKING
    assert result.effects == ()


def test_open_marker_checked_before_close_marker():
    """A delta that both starts and ends with markers only opens reasoning."""
    result = transition(ClassifierState(), "<think></think>")

    assert result.state.mode is StreamState.THINKING
    assert result.effects == ()


def test_close_marker_without_reasoning_content_has_no_close_effect():
    state = ClassifierState(mode=StreamState.THINKING)

    result = transition(state, "</think>")

    assert result.state.mode is StreamState.NORMAL
    assert result.effects == ()


def test_close_marker_closes_opened_reasoning():
    state = ClassifierState(mode=StreamState.THINKING, reasoning_opened=True)

    result = transition(state, "done</think>")

    assert result.state.mode is StreamState.NORMAL
    assert result.effects == (Effect.CLOSE_REASONING,)


def test_blank_reasoning_is_suppressed_until_segment_opens():
    state = ClassifierState(mode=StreamState.THINKING)

    assert transition(state, "\n\n").effects == ()

    opened = transition(state, "hmm")
    assert opened.effects == (Effect.OPEN_REASONING, Effect.APPEND_REASONING)

    # Once open, blank deltas are kept
    assert transition(opened.state, "\n").effects == (Effect.APPEND_REASONING,)


def test_first_normal_delta_marks_response():
    first = transition(ClassifierState(), "Hello")
    assert first.effects == (Effect.APPEND_ANSWER, Effect.MARK_FIRST_RESPONSE)
    assert first.state.first_response is False

    second = transition(first.state, " world")
    assert second.effects == (Effect.APPEND_ANSWER,)


def test_marker_inside_text_is_ordinary_content():
    classifier = _classifier()

    updates = classifier.feed("before <think> after")

    assert [u.kind for u in updates] == [SegmentKind.ANSWER]
    assert classifier.session.answer_text == "before <think> after"
    assert classifier.session.state is StreamState.NORMAL


def test_reasoning_then_answer_scenario():
    classifier = _classifier()
    session = classifier.session

    updates = []
    for delta in ["<think>", "considering...", "</think>", "Hello", " world"]:
        updates.extend(classifier.feed(delta))

    assert [(u.kind, u.text) for u in updates] == [
        (SegmentKind.REASONING, "considering..."),
        (SegmentKind.ANSWER, "Hello"),
        (SegmentKind.ANSWER, " world"),
    ]
    assert session.reasoning_text == "considering..."
    assert session.answer_text == "Hello world"
    assert session.reasoning_opened_at < session.reasoning_closed_at < session.response_timestamp


def test_first_token_timing_excludes_thinking_deltas():
    classifier = _classifier()

    classifier.feed("<think>")
    thinking = classifier.feed("planning")
    classifier.feed("</think>")
    answer = classifier.feed("Hi")

    assert classifier.session.response_timestamp == answer[0].timestamp
    assert classifier.session.response_timestamp > thinking[0].timestamp


def test_closed_session_ignores_deltas():
    classifier = _classifier()
    classifier.feed("Hello")
    classifier.session.cancel()

    assert classifier.feed(" world") == []
    assert classifier.session.answer_text == "Hello"


def test_feed_text_matches_streamed_classification():
    classifier = _classifier()

    classifier.feed_text("<think>step one</think>The answer")

    assert classifier.session.reasoning_text == "step one"
    assert classifier.session.answer_text == "The answer"


def test_split_marked_text_isolates_markers():
    assert list(split_marked_text("a<think>b</think>c")) == ["a", "<think>", "b", "</think>", "c"]


def test_tool_activity_entries_and_collapse():
    classifier = _classifier()

    echo = classifier.accept_tool_activity(UserEcho(content="what is 6*7?"))
    call = classifier.accept_tool_activity(
        ToolCallIssued(tool_calls=[ToolCallInfo(id="c1", name="calc", arguments={"x": 6})])
    )
    result = classifier.accept_tool_activity(ToolResult(name="calc", id="c1", response_data="42"))

    assert [u.kind for u in (echo, call, result)] == [SegmentKind.TOOL_ACTIVITY] * 3
    assert [u.collapse for u in (echo, call, result)] == [False, False, True]
    assert classifier.session.tool_activity_opened_at == echo.timestamp

    transcript = classifier.session.tool_activity_text
    assert transcript.count("\n\n") == 3
    assert ' : {"role":"user","content":"what is 6*7?"}\n\n' in transcript
    assert '"role":"tool"' in transcript


def test_tool_activity_dropped_after_close():
    classifier = _classifier()
    classifier.session.claim_finalization()

    assert classifier.accept_tool_activity("late event") is None
    assert classifier.session.tool_activity_text == ""


def test_tool_activity_from_worker_threads_keeps_every_entry():
    classifier = _classifier()

    def emit(n: int) -> None:
        for i in range(50):
            classifier.accept_tool_activity(f"worker {n} event {i}")

    threads = [threading.Thread(target=emit, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    transcript = classifier.session.tool_activity_text
    assert transcript.count("\n\n") == 200
    # Order within a single producer is preserved
    positions = [transcript.index(f"worker 0 event {i}\n") for i in range(50)]
    assert positions == sorted(positions)
