from .cache import SessionStateCache
from .events import (
    AppendedToLast,
    GeneratingChanged,
    LastContentReplaced,
    LoadingChanged,
    MessageAdded,
    MessageRemoved,
    UiEvent,
)
from .fallback import FallbackPolicy
from .models import Agent, ImageAttachment, SessionSettings, StreamTask, TurnPhase, UiMessage
from .orchestrator import NO_PROVIDER_MESSAGE, ConversationOrchestrator
from .planner import AutoLoopPlanner
from .scope import TaskScope
from .state import SessionState
from .streaming import StreamingResponseHandler

__all__ = [
    "ConversationOrchestrator",
    "NO_PROVIDER_MESSAGE",
    "SessionState",
    "SessionStateCache",
    "StreamingResponseHandler",
    "AutoLoopPlanner",
    "FallbackPolicy",
    "TaskScope",
    "Agent",
    "ImageAttachment",
    "SessionSettings",
    "StreamTask",
    "TurnPhase",
    "UiMessage",
    "UiEvent",
    "MessageAdded",
    "AppendedToLast",
    "LastContentReplaced",
    "LoadingChanged",
    "GeneratingChanged",
    "MessageRemoved",
]
