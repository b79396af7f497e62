"""In-memory knowledge store.

Matches the SQLite store's semantics closely enough for tests and ephemeral
sessions: a chunk matches when any of its words starts with a query term.
"""

import asyncio
import re

from .base import KnowledgeStore, parse_fts_query
from .models import KnowledgeChunk, SourceSummary, StorageStats

_WORD = re.compile(r"\w+")


class InMemoryKnowledgeStore(KnowledgeStore):
    """List-backed store; insertion order breaks rank ties."""

    def __init__(self):
        self._chunks: list[KnowledgeChunk] = []
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def insert_chunks(self, chunks: list[KnowledgeChunk]) -> int:
        async with self._write_lock:
            self._chunks.extend(chunks)
        return len(chunks)

    async def replace_source(self, filename: str, chunks: list[KnowledgeChunk]) -> int:
        async with self._write_lock:
            kept = [c for c in self._chunks if c.source_filename != filename]
            self._chunks = kept + list(chunks)
        return len(chunks)

    async def search(self, fts_query: str, limit: int = 20) -> list[KnowledgeChunk]:
        terms = [term.lower() for term in parse_fts_query(fts_query)]
        if not terms:
            return []

        scored = []
        for chunk in self._chunks:
            words = [word.lower() for word in _WORD.findall(chunk.content)]
            hits = sum(1 for term in terms if any(word.startswith(term) for word in words))
            if hits:
                scored.append((hits, chunk))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [chunk for _, chunk in scored[:limit]]

    async def delete_by_source(self, filename: str) -> int:
        async with self._write_lock:
            before = len(self._chunks)
            self._chunks = [c for c in self._chunks if c.source_filename != filename]
            return before - len(self._chunks)

    async def clear(self) -> int:
        async with self._write_lock:
            count = len(self._chunks)
            self._chunks.clear()
            return count

    async def list_sources(self) -> list[SourceSummary]:
        summaries: dict[str, SourceSummary] = {}
        for chunk in self._chunks:
            existing = summaries.get(chunk.source_filename)
            if existing is None:
                summaries[chunk.source_filename] = SourceSummary(
                    filename=chunk.source_filename,
                    chunk_count=1,
                    last_ingested=chunk.created_at
                )
            else:
                existing.chunk_count += 1
                existing.last_ingested = max(existing.last_ingested, chunk.created_at)

        # Later ingestion wins ties
        ordered = list(reversed(summaries.values()))
        ordered.sort(key=lambda s: s.last_ingested, reverse=True)
        return ordered

    async def get_stats(self) -> StorageStats:
        return StorageStats(
            total_chunks=len(self._chunks),
            total_sources=len({c.source_filename for c in self._chunks}),
            total_size_bytes=sum(len(c.content.encode("utf-8")) for c in self._chunks),
            last_indexed=max((c.created_at for c in self._chunks), default=None)
        )
