"""SQLite persistence gateway.

Provides durable message storage using a SQLite database file.
Uses aiosqlite for async access.
"""

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from ..config import AUTHOR_AI
from .base import MessagePersistenceGateway
from .models import StoredMessage


class SQLitePersistenceGateway(MessagePersistenceGateway):
    """SQLite-backed gateway.

    Stores sessions and their messages; supports persistent history across
    runs.
    """

    def __init__(self, path: str | Path = "./pylogos_memory.db"):
        self._db_path = path if str(path) == ":memory:" else Path(path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        if isinstance(self._db_path, Path):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA foreign_keys = ON")
        await self._create_schema()

    async def _create_schema(self) -> None:
        """Create the chat_sessions and chat_messages tables."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS chat_sessions (
                session_id TEXT PRIMARY KEY,
                created_at TEXT NOT NULL,
                last_active_at TEXT NOT NULL
            )
        """)

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS chat_messages (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                author TEXT NOT NULL,
                content TEXT NOT NULL,
                image_url TEXT,
                sent_at TEXT NOT NULL,
                FOREIGN KEY (session_id) REFERENCES chat_sessions(session_id) ON DELETE CASCADE
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_chat_messages_session_seq
            ON chat_messages(session_id, seq)
        """)

        await self._connection.commit()

    async def _ensure_session(self, session_id: str) -> None:
        """Insert the session row on first write."""
        now = datetime.now(timezone.utc).isoformat()
        await self._connection.execute("""
            INSERT OR IGNORE INTO chat_sessions (session_id, created_at, last_active_at)
            VALUES (?, ?, ?)
        """, (session_id, now, now))

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _insert(self, session_id: str, item: StoredMessage) -> None:
        await self._connection.execute("""
            INSERT INTO chat_messages (session_id, author, content, image_url, sent_at)
            VALUES (?, ?, ?, ?, ?)
        """, (session_id, item.author, item.content, item.image_url, item.timestamp.isoformat()))

    async def _last_message(self, session_id: str) -> tuple[int, str] | None:
        async with self._connection.execute(
            "SELECT seq, author FROM chat_messages WHERE session_id = ? ORDER BY seq DESC LIMIT 1",
            (session_id,)
        ) as cursor:
            return await cursor.fetchone()

    async def append_message(self, session_id: str, item: StoredMessage) -> None:
        await self._ensure_session(session_id)
        await self._insert(session_id, item)
        await self._connection.commit()

    async def replace_last_assistant_message(self, session_id: str, item: StoredMessage) -> None:
        await self._ensure_session(session_id)
        last = await self._last_message(session_id)

        if last is not None and last[1] == AUTHOR_AI:
            await self._connection.execute("""
                UPDATE chat_messages SET author = ?, content = ?, image_url = ?, sent_at = ?
                WHERE seq = ?
            """, (item.author, item.content, item.image_url, item.timestamp.isoformat(), last[0]))
        else:
            await self._insert(session_id, item)

        await self._connection.commit()

    async def remove_last_assistant_message(self, session_id: str) -> bool:
        cursor = await self._connection.execute("""
            DELETE FROM chat_messages WHERE seq = (
                SELECT seq FROM chat_messages
                WHERE session_id = ? AND author = ?
                ORDER BY seq DESC LIMIT 1
            )
        """, (session_id, AUTHOR_AI))
        await self._connection.commit()
        return cursor.rowcount > 0

    async def get_messages(self, session_id: str) -> list[StoredMessage]:
        async with self._connection.execute(
            """
            SELECT author, content, image_url, sent_at
            FROM chat_messages
            WHERE session_id = ?
            ORDER BY seq ASC
            """,
            (session_id,)
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            StoredMessage(
                author=author,
                content=content,
                image_url=image_url,
                timestamp=datetime.fromisoformat(sent_at)
            )
            for author, content, image_url, sent_at in rows
        ]

    async def touch_session(self, session_id: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        await self._connection.execute("""
            INSERT INTO chat_sessions (session_id, created_at, last_active_at)
            VALUES (?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET last_active_at = excluded.last_active_at
        """, (session_id, now, now))
        await self._connection.commit()

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> str | Path:
        return self._db_path
