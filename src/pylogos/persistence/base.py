"""Abstract base class for message persistence gateways.

The abstraction hides:
- Storage format and location
- Connection management
- How the trailing assistant message is located
"""

from abc import ABC, abstractmethod

from .models import StoredMessage


class MessagePersistenceGateway(ABC):
    """Durable record of each session's messages.

    Writes are issued by the conversation orchestrator while a reply streams;
    the gateway only needs to keep the latest state of every message.
    """

    async def connect(self) -> None:
        """Initialize the backend."""

    async def disconnect(self) -> None:
        """Close the backend gracefully."""

    @abstractmethod
    async def append_message(self, session_id: str, item: StoredMessage) -> None:
        """Append a message to the end of a session."""

    @abstractmethod
    async def replace_last_assistant_message(self, session_id: str, item: StoredMessage) -> None:
        """Overwrite the session's trailing assistant message.

        Idempotent upsert: when the last message is not an assistant message,
        the item is appended instead.
        """

    @abstractmethod
    async def remove_last_assistant_message(self, session_id: str) -> bool:
        """Remove the most recent assistant message.

        Returns:
            True if a message was removed
        """

    @abstractmethod
    async def get_messages(self, session_id: str) -> list[StoredMessage]:
        """All messages of a session, oldest first."""

    @abstractmethod
    async def touch_session(self, session_id: str) -> None:
        """Record activity on a session."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""
