"""Bounded cache of live session states.

Each entry owns a child scope of the cache's root scope; evicting an entry
cancels everything the session still has running.
"""

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable

from ..config import NEW_CHAT_NAME, SESSION_CACHE_SIZE
from .models import SessionSettings
from .scope import TaskScope
from .state import SessionState

logger = logging.getLogger(__name__)


class SessionStateCache:
    """LRU cache of SessionState keyed by session id."""

    def __init__(
        self,
        root_scope: TaskScope | None = None,
        max_size: int = SESSION_CACHE_SIZE,
        settings_factory: Callable[[], SessionSettings] = SessionSettings
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._root = root_scope or TaskScope()
        self._max_size = max_size
        self._settings_factory = settings_factory
        self._entries: OrderedDict[str, SessionState] = OrderedDict()
        self._lock = threading.RLock()

    @property
    def root_scope(self) -> TaskScope:
        return self._root

    def get_or_create(self, session_id: str, name: str = NEW_CHAT_NAME) -> SessionState:
        """Return the cached state, or build one bound to a fresh child scope."""
        with self._lock:
            state = self._entries.get(session_id)
            if state is not None:
                self._entries.move_to_end(session_id)
                return state

            state = SessionState(
                session_id=session_id,
                scope=self._root.child(f"session-{session_id}"),
                channel_name=name,
                settings=self._settings_factory()
            )
            self._entries[session_id] = state

            while len(self._entries) > self._max_size:
                evicted_id, evicted = self._entries.popitem(last=False)
                evicted.scope.cancel()
                logger.debug("Evicted session %s from cache", evicted_id)

            return state

    def get(self, session_id: str) -> SessionState | None:
        with self._lock:
            state = self._entries.get(session_id)
            if state is not None:
                self._entries.move_to_end(session_id)
            return state

    def remove(self, session_id: str) -> bool:
        """Drop a session and cancel its work."""
        with self._lock:
            state = self._entries.pop(session_id, None)
            if state is None:
                return False
            state.scope.cancel()
            return True

    def clear(self) -> None:
        with self._lock:
            for state in self._entries.values():
                state.scope.cancel()
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._entries
