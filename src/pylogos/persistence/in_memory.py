"""In-memory persistence gateway.

Simple dict-based storage for session-only history.
Data is lost when the application exits.
"""

from datetime import datetime, timezone

from .base import MessagePersistenceGateway
from .models import StoredMessage


class InMemoryPersistenceGateway(MessagePersistenceGateway):
    """In-memory gateway (session-only).

    Suitable for single-process use or testing.
    """

    def __init__(self):
        self._messages: dict[str, list[StoredMessage]] = {}
        self._touched: dict[str, datetime] = {}

    async def append_message(self, session_id: str, item: StoredMessage) -> None:
        self._messages.setdefault(session_id, []).append(item)

    async def replace_last_assistant_message(self, session_id: str, item: StoredMessage) -> None:
        messages = self._messages.setdefault(session_id, [])
        if messages and messages[-1].is_assistant:
            messages[-1] = item
        else:
            messages.append(item)

    async def remove_last_assistant_message(self, session_id: str) -> bool:
        messages = self._messages.get(session_id, [])
        for index in range(len(messages) - 1, -1, -1):
            if messages[index].is_assistant:
                del messages[index]
                return True
        return False

    async def get_messages(self, session_id: str) -> list[StoredMessage]:
        return list(self._messages.get(session_id, []))

    async def touch_session(self, session_id: str) -> None:
        self._touched[session_id] = datetime.now(timezone.utc)

    def last_touched(self, session_id: str) -> datetime | None:
        return self._touched.get(session_id)

    @property
    def backend_type(self) -> str:
        return "memory"
