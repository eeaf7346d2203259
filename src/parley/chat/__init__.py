"""Streaming chat engine.

A generation flows through these components:

- :class:`RequestAssembler` - conversation state to a provider request
- :class:`StreamDispatcher` - streams the provider, runs retrieval and tool rounds
- :class:`SegmentClassifier` - splits deltas into answer, reasoning and tool activity
- :class:`FinalizationRecorder` - folds session buffers into message metadata
- :class:`CancellationController` - stops a generation, keeping what arrived
- :class:`ChatEngine` - wires the above and hands back a :class:`ChatStream`

Conversations live in a :class:`ConversationService` and are saved to JSON
files by :class:`ConversationPersistence`.
"""

from parley.chat.cancellation import CancellationController
from parley.chat.classifier import SegmentClassifier
from parley.chat.dispatcher import ResponseMetadata, StreamDispatcher
from parley.chat.engine import ChatEngine, ChatResult, ChatStream, create_engine
from parley.chat.persistence import ConversationPersistence
from parley.chat.recorder import FinalizationRecorder
from parley.chat.replay import replay
from parley.chat.request import ProviderRequest, RequestAssembler
from parley.chat.schema import Conversation
from parley.chat.segments import Segment, SegmentKind, SegmentUpdate
from parley.chat.session import StreamSession, StreamState
from parley.chat.store import ConversationService, InMemoryConversationStore

__all__ = [
    "CancellationController",
    "ChatEngine",
    "ChatResult",
    "ChatStream",
    "Conversation",
    "ConversationPersistence",
    "ConversationService",
    "FinalizationRecorder",
    "InMemoryConversationStore",
    "ProviderRequest",
    "RequestAssembler",
    "ResponseMetadata",
    "Segment",
    "SegmentClassifier",
    "SegmentKind",
    "SegmentUpdate",
    "StreamDispatcher",
    "StreamSession",
    "StreamState",
    "create_engine",
    "replay",
]
