"""Abstract base class for knowledge stores."""

import re
from abc import ABC, abstractmethod

from .models import KnowledgeChunk, SourceSummary, StorageStats

_QUOTED_PREFIX = re.compile(r'"((?:[^"]|"")*)"\*?')


def build_fts_query(terms: list[str]) -> str:
    """OR-join terms as quoted prefix queries (``"term"* OR ...``)."""
    return " OR ".join('"{}"*'.format(term.replace('"', '""')) for term in terms)


def parse_fts_query(fts_query: str) -> list[str]:
    """Recover the terms of a query produced by build_fts_query."""
    return [match.replace('""', '"') for match in _QUOTED_PREFIX.findall(fts_query) if match]


class KnowledgeStore(ABC):
    """
    Abstract knowledge store.

    Hides all database implementation details including:
    - Connection management
    - Full-text index layout and query syntax
    - Serialization of writes
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the store and create its schema if needed.

        Raises:
            ConnectionError: If the store cannot be opened
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the store gracefully."""

    @abstractmethod
    async def insert_chunks(self, chunks: list[KnowledgeChunk]) -> int:
        """
        Store chunks in one batch.

        Args:
            chunks: Chunks to store

        Returns:
            Number of chunks stored
        """

    @abstractmethod
    async def replace_source(self, filename: str, chunks: list[KnowledgeChunk]) -> int:
        """
        Swap every chunk of a document for new ones in one write.

        Concurrent replacements of the same filename never interleave, and a
        failed insert leaves the previous chunks in place.

        Args:
            filename: Source document name
            chunks: New chunks of that document

        Returns:
            Number of chunks stored
        """

    @abstractmethod
    async def search(self, fts_query: str, limit: int = 20) -> list[KnowledgeChunk]:
        """
        Full-text search.

        Args:
            fts_query: Query built by build_fts_query
            limit: Maximum results to return

        Returns:
            Matching chunks in the store's native rank order
        """

    @abstractmethod
    async def delete_by_source(self, filename: str) -> int:
        """
        Delete all chunks of a document.

        Args:
            filename: Source document name

        Returns:
            Number of chunks deleted
        """

    @abstractmethod
    async def clear(self) -> int:
        """
        Delete every chunk.

        Returns:
            Number of chunks deleted
        """

    @abstractmethod
    async def list_sources(self) -> list[SourceSummary]:
        """
        List ingested documents, newest first.

        Returns:
            One summary per source filename
        """

    @abstractmethod
    async def get_stats(self) -> StorageStats:
        """
        Get store statistics.

        Returns:
            Store statistics
        """

    async def __aenter__(self) -> "KnowledgeStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
