from .base import KnowledgeStore, build_fts_query, parse_fts_query
from .factory import create_knowledge_store
from .in_memory import InMemoryKnowledgeStore
from .models import KnowledgeChunk, SourceSummary, StorageStats
from .sqlite import SQLiteKnowledgeStore

__all__ = [
    "KnowledgeStore",
    "create_knowledge_store",
    "build_fts_query",
    "parse_fts_query",
    "InMemoryKnowledgeStore",
    "SQLiteKnowledgeStore",
    "KnowledgeChunk",
    "SourceSummary",
    "StorageStats",
]
