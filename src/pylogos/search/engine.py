import logging
import re
from pathlib import Path

from ..config import (
    CONTEXT_SEPARATOR,
    DEFAULT_CHUNK_SIZE,
    RECALL_LIMIT,
    RERANK_TOP_K,
    TRACE_PREVIEW_LENGTH,
)
from ..indexer import extract_text, split_text_into_chunks
from ..storage import KnowledgeStore, build_fts_query
from ..storage.models import KnowledgeChunk, SourceSummary
from .models import RetrievalResult, ScoredChunk

logger = logging.getLogger(__name__)

_DISALLOWED = re.compile(r"[^\w\s一-龥]")


def extract_terms(query: str) -> list[str]:
    """Sanitize a query and return its distinct terms in order of appearance.

    Punctuation becomes whitespace; terms are compared case-insensitively.
    """
    seen = set()
    terms = []
    for token in _DISALLOWED.sub(" ", query).split():
        key = token.lower()
        if key not in seen:
            seen.add(key)
            terms.append(token)
    return terms


def coverage_score(content: str, terms: list[str]) -> float:
    """Fraction of terms found as case-insensitive substrings of content."""
    if not terms:
        return 0.0
    lowered = content.lower()
    found = sum(1 for term in terms if term.lower() in lowered)
    return found / len(terms)


class RetrievalEngine:
    """Keyword retrieval over the knowledge store.

    Hidden design decisions:
    - Query sanitization and full-text query syntax
    - Recall size and coverage re-ranking
    - Context formatting for the prompt
    """

    def __init__(
        self,
        store: KnowledgeStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        recall_limit: int = RECALL_LIMIT,
        top_k: int = RERANK_TOP_K
    ):
        """Initialize the engine.

        Args:
            store: Connected knowledge store
            chunk_size: Maximum characters per stored chunk
            recall_limit: Candidates fetched from the full-text index
            top_k: Chunks kept after re-ranking
        """
        self._store = store
        self._chunk_size = chunk_size
        self._recall_limit = recall_limit
        self._top_k = top_k

    async def ingest(self, document: bytes | str, filename: str) -> int:
        """Chunk a document and store it, replacing any previous version.

        Args:
            document: Raw document bytes, or already-extracted text
            filename: Source name; selects the parser and keys replacement

        Returns:
            Number of chunks stored

        Raises:
            ValueError: If the document type is not supported
        """
        text = document if isinstance(document, str) else extract_text(document, filename)
        pieces = split_text_into_chunks(text, self._chunk_size)

        chunks = [KnowledgeChunk(source_filename=filename, content=piece) for piece in pieces]
        stored = await self._store.replace_source(filename, chunks)
        logger.info("Ingested %s: %d chunks", filename, stored)
        return stored

    async def ingest_file(self, path: str | Path) -> int:
        """Ingest a document from disk under its file name."""
        path = Path(path)
        return await self.ingest(path.read_bytes(), path.name)

    async def retrieve(self, query: str) -> RetrievalResult:
        """Retrieve formatted context for a query.

        Never raises: empty queries, empty indexes and store failures all
        produce an empty result.
        """
        terms = extract_terms(query)
        if not terms:
            return RetrievalResult()

        try:
            candidates = await self._store.search(build_fts_query(terms), self._recall_limit)
        except Exception:
            logger.exception("Knowledge search failed for query %r", query)
            return RetrievalResult()

        if not candidates:
            return RetrievalResult(explain_trace=self._format_trace(terms, 0, []))

        scored = [
            ScoredChunk(chunk=chunk, score=coverage_score(chunk.content, terms), rank=rank)
            for rank, chunk in enumerate(candidates, start=1)
        ]
        # sort is stable, so recall order breaks ties
        scored.sort(key=lambda hit: hit.score, reverse=True)

        selected: list[ScoredChunk] = []
        seen_content = set()
        for hit in scored[:self._top_k]:
            if hit.chunk.content in seen_content:
                continue
            seen_content.add(hit.chunk.content)
            selected.append(hit)

        context = CONTEXT_SEPARATOR.join(
            f"source: {hit.chunk.source_filename}\n{hit.chunk.content}" for hit in selected
        )

        return RetrievalResult(
            augmented_context=context,
            explain_trace=self._format_trace(terms, len(candidates), selected),
            hits=selected
        )

    async def retrieve_knowledge(self, query: str) -> str:
        """Context string for a query, empty when nothing matches."""
        result = await self.retrieve(query)
        return result.augmented_context

    def _format_trace(self, terms: list[str], candidate_count: int, selected: list[ScoredChunk]) -> str:
        lines = [
            f"Terms: {', '.join(terms)}",
            f"Candidates recalled: {candidate_count}",
        ]
        for position, hit in enumerate(selected, start=1):
            preview = hit.chunk.content[:TRACE_PREVIEW_LENGTH].replace("\n", " ")
            lines.append(
                f"#{position} score={hit.score:.2f} rank={hit.rank} "
                f"source={hit.chunk.source_filename} | {preview}"
            )
        return "\n".join(lines)

    async def delete_by_source(self, filename: str) -> int:
        return await self._store.delete_by_source(filename)

    async def clear(self) -> int:
        return await self._store.clear()

    async def list_sources(self) -> list[SourceSummary]:
        return await self._store.list_sources()
