from .base import MessagePersistenceGateway
from .models import StoredMessage


class NoOpPersistenceGateway(MessagePersistenceGateway):
    """Discards every write. Used when history need not survive the process."""

    async def append_message(self, session_id: str, item: StoredMessage) -> None:
        pass

    async def replace_last_assistant_message(self, session_id: str, item: StoredMessage) -> None:
        pass

    async def remove_last_assistant_message(self, session_id: str) -> bool:
        return False

    async def get_messages(self, session_id: str) -> list[StoredMessage]:
        return []

    async def touch_session(self, session_id: str) -> None:
        pass

    @property
    def backend_type(self) -> str:
        return "noop"
