"""Tests for the cancellation controller."""

from unittest.mock import MagicMock

from conftest import CounterClock

from parley.chat.cancellation import CancellationController
from parley.chat.classifier import SegmentClassifier
from parley.chat.recorder import FinalizationRecorder
from parley.chat.schema import Conversation
from parley.chat.session import StreamSession
from parley.llm.client import Message


def _setup():
    messages = [Message(role="user", content="hi"), Message(role="assistant", content="")]
    conversation = Conversation(
        id="Chat-1", create_timestamp=1, update_timestamp=1, messages_loader=lambda: messages
    )
    session = StreamSession("Chat-1", clock=CounterClock())
    return conversation, session, messages


def test_cancel_finalizes_buffered_content():
    conversation, session, messages = _setup()
    classifier = SegmentClassifier(session)
    classifier.feed("Hel")
    task = MagicMock()
    task.done.return_value = False
    controller = CancellationController(FinalizationRecorder(), conversation, task)

    assert controller.cancel(session) is True

    task.cancel.assert_called_once()
    assert session.cancelled and session.finalized
    assert messages[1].content == "Hel"
    # Further deltas are dropped
    assert classifier.feed("lo") == []
    assert messages[1].content == "Hel"


def test_cancel_is_idempotent():
    conversation, session, _ = _setup()
    recorder = MagicMock(wraps=FinalizationRecorder())
    controller = CancellationController(recorder, conversation)

    assert controller.cancel(session) is True
    assert controller.cancel(session) is False
    recorder.finalize.assert_called_once()


def test_cancel_after_natural_completion_is_noop():
    conversation, session, messages = _setup()
    SegmentClassifier(session).feed("Done")
    FinalizationRecorder().finalize(session, conversation)
    task = MagicMock()
    controller = CancellationController(FinalizationRecorder(), conversation, task)

    assert controller.cancel(session) is False
    assert session.cancelled is False
    task.cancel.assert_not_called()
    assert messages[1].content == "Done"
