"""Observable state of one chat session.

Messages are immutable; every mutation replaces a list element and notifies
subscribers with a UiEvent.
"""

import asyncio
import logging
from collections.abc import Callable

from ..config import NEW_CHAT_NAME
from ..llm.models import GeminiConfig, LocalConfig, OpenAIConfig
from .events import (
    AppendedToLast,
    GeneratingChanged,
    LastContentReplaced,
    LoadingChanged,
    MessageAdded,
    MessageRemoved,
    UiEvent,
)
from .models import Agent, SessionSettings, StreamTask, TurnPhase, UiMessage
from .scope import TaskScope

logger = logging.getLogger(__name__)

Subscriber = Callable[[UiEvent], None]


class SessionState:
    """Messages, flags and settings of a session, plus its task scope."""

    def __init__(
        self,
        session_id: str,
        scope: TaskScope,
        channel_name: str = NEW_CHAT_NAME,
        settings: SessionSettings | None = None,
        agent: Agent | None = None,
        provider: OpenAIConfig | GeminiConfig | LocalConfig | None = None,
        model: str | None = None
    ):
        self.session_id = session_id
        self.scope = scope
        self.channel_name = channel_name
        self.settings = settings or SessionSettings()
        self.agent = agent or Agent()
        self.provider = provider
        self.model = model

        self.phase = TurnPhase.IDLE
        self.active_stream: StreamTask | None = None
        self.active_job: asyncio.Task | None = None

        self._messages: list[UiMessage] = []
        self._is_generating = False
        self._subscribers: list[Subscriber] = []

    @property
    def messages(self) -> list[UiMessage]:
        """Snapshot of the message list."""
        return list(self._messages)

    @property
    def last_message(self) -> UiMessage | None:
        return self._messages[-1] if self._messages else None

    @property
    def is_generating(self) -> bool:
        return self._is_generating

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, event: UiEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Session %s subscriber failed on %s", self.session_id, type(event).__name__)

    def last_index_of(self, author: str) -> int:
        """Index of the newest message by author, or -1."""
        for index in range(len(self._messages) - 1, -1, -1):
            if self._messages[index].author == author:
                return index
        return -1

    def message_at(self, index: int) -> UiMessage | None:
        if 0 <= index < len(self._messages):
            return self._messages[index]
        return None

    def add_message(self, message: UiMessage) -> int:
        self._messages.append(message)
        index = len(self._messages) - 1
        self._emit(MessageAdded(index, message))
        return index

    def load_messages(self, messages: list[UiMessage]) -> None:
        """Replace the list without per-message events (restoring history)."""
        self._messages = list(messages)

    def append_to_last(self, text: str) -> None:
        if not self._messages:
            return
        last = self._messages[-1]
        self._messages[-1] = last.model_copy(update={"content": last.content + text})
        self._emit(AppendedToLast(text))

    def replace_content(self, index: int, content: str) -> None:
        message = self.message_at(index)
        if message is None:
            return
        self._messages[index] = message.model_copy(update={"content": content})
        self._emit(LastContentReplaced(index, content))

    def set_loading(self, index: int, is_loading: bool) -> None:
        message = self.message_at(index)
        if message is None or message.is_loading == is_loading:
            return
        self._messages[index] = message.model_copy(update={"is_loading": is_loading})
        self._emit(LoadingChanged(index, is_loading))

    def remove_at(self, index: int) -> UiMessage | None:
        message = self.message_at(index)
        if message is None:
            return None
        del self._messages[index]
        self._emit(MessageRemoved(index, message))
        return message

    def set_generating(self, is_generating: bool) -> None:
        if self._is_generating == is_generating:
            return
        self._is_generating = is_generating
        self._emit(GeneratingChanged(is_generating))
