"""SQLite knowledge store.

Chunks live in a plain table mirrored into an FTS5 index (``unicode61``
tokenizer) through triggers. Uses aiosqlite for async access.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path

import aiosqlite

from .base import KnowledgeStore
from .models import KnowledgeChunk, SourceSummary, StorageStats

logger = logging.getLogger(__name__)


class SQLiteKnowledgeStore(KnowledgeStore):
    """SQLite-backed knowledge store with FTS5 search.

    Reads run concurrently; writes are serialized by an asyncio.Lock.
    """

    def __init__(self, path: str | Path = "./knowledge.db"):
        self._db_path = path if str(path) == ":memory:" else Path(path)
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        if isinstance(self._db_path, Path):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._connection = await aiosqlite.connect(self._db_path)
        except Exception as e:
            raise ConnectionError(f"Failed to open knowledge store: {e}") from e
        await self._create_schema()
        logger.debug("Knowledge store opened at %s", self._db_path)

    async def _create_schema(self) -> None:
        """Create tables, FTS index and sync triggers."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS knowledge_chunks (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                source_filename TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_knowledge_chunks_source
            ON knowledge_chunks(source_filename)
        """)

        await self._connection.execute("""
            CREATE VIRTUAL TABLE IF NOT EXISTS knowledge_chunks_fts USING fts5(
                content,
                content='knowledge_chunks',
                content_rowid='seq',
                tokenize='unicode61'
            )
        """)

        await self._connection.execute("""
            CREATE TRIGGER IF NOT EXISTS knowledge_chunks_ai AFTER INSERT ON knowledge_chunks BEGIN
                INSERT INTO knowledge_chunks_fts(rowid, content) VALUES (new.seq, new.content);
            END
        """)

        await self._connection.execute("""
            CREATE TRIGGER IF NOT EXISTS knowledge_chunks_ad AFTER DELETE ON knowledge_chunks BEGIN
                INSERT INTO knowledge_chunks_fts(knowledge_chunks_fts, rowid, content)
                VALUES ('delete', old.seq, old.content);
            END
        """)

        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Knowledge store is not connected. Call connect() first.")
        return self._connection

    async def insert_chunks(self, chunks: list[KnowledgeChunk]) -> int:
        connection = self._require_connection()
        if not chunks:
            return 0

        async with self._write_lock:
            await connection.executemany(
                """
                INSERT INTO knowledge_chunks (id, source_filename, content, created_at)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (chunk.id, chunk.source_filename, chunk.content, chunk.created_at.isoformat())
                    for chunk in chunks
                ]
            )
            await connection.commit()

        return len(chunks)

    async def replace_source(self, filename: str, chunks: list[KnowledgeChunk]) -> int:
        connection = self._require_connection()

        async with self._write_lock:
            try:
                cursor = await connection.execute(
                    "DELETE FROM knowledge_chunks WHERE source_filename = ?",
                    (filename,)
                )
                removed = cursor.rowcount
                await connection.executemany(
                    """
                    INSERT INTO knowledge_chunks (id, source_filename, content, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    [
                        (chunk.id, filename, chunk.content, chunk.created_at.isoformat())
                        for chunk in chunks
                    ]
                )
                await connection.commit()
            except Exception:
                await connection.rollback()
                raise

        if removed:
            logger.info("Replaced %d existing chunks of %s", removed, filename)
        return len(chunks)

    async def search(self, fts_query: str, limit: int = 20) -> list[KnowledgeChunk]:
        connection = self._require_connection()
        if not fts_query.strip():
            return []

        async with connection.execute(
            """
            SELECT c.id, c.source_filename, c.content, c.created_at
            FROM knowledge_chunks_fts f
            JOIN knowledge_chunks c ON c.seq = f.rowid
            WHERE knowledge_chunks_fts MATCH ?
            ORDER BY f.rank
            LIMIT ?
            """,
            (fts_query, limit)
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            KnowledgeChunk(
                id=chunk_id,
                source_filename=source,
                content=content,
                created_at=datetime.fromisoformat(created_at)
            )
            for chunk_id, source, content, created_at in rows
        ]

    async def delete_by_source(self, filename: str) -> int:
        connection = self._require_connection()
        async with self._write_lock:
            cursor = await connection.execute(
                "DELETE FROM knowledge_chunks WHERE source_filename = ?",
                (filename,)
            )
            await connection.commit()
        return cursor.rowcount

    async def clear(self) -> int:
        connection = self._require_connection()
        async with self._write_lock:
            cursor = await connection.execute("DELETE FROM knowledge_chunks")
            await connection.commit()
        return cursor.rowcount

    async def list_sources(self) -> list[SourceSummary]:
        connection = self._require_connection()
        async with connection.execute(
            """
            SELECT source_filename, COUNT(*), MAX(created_at)
            FROM knowledge_chunks
            GROUP BY source_filename
            ORDER BY MAX(created_at) DESC, MAX(seq) DESC
            """
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            SourceSummary(
                filename=filename,
                chunk_count=count,
                last_ingested=datetime.fromisoformat(latest)
            )
            for filename, count, latest in rows
        ]

    async def get_stats(self) -> StorageStats:
        connection = self._require_connection()
        async with connection.execute(
            """
            SELECT COUNT(*), COUNT(DISTINCT source_filename),
                   COALESCE(SUM(LENGTH(CAST(content AS BLOB))), 0), MAX(created_at)
            FROM knowledge_chunks
            """
        ) as cursor:
            total_chunks, total_sources, total_size, last_indexed = await cursor.fetchone()

        return StorageStats(
            total_chunks=total_chunks,
            total_sources=total_sources,
            total_size_bytes=total_size,
            last_indexed=datetime.fromisoformat(last_indexed) if last_indexed else None
        )

    @property
    def db_path(self) -> str | Path:
        return self._db_path
