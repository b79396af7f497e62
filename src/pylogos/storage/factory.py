"""Factory for creating knowledge stores."""

from typing import Any

from .base import KnowledgeStore
from .in_memory import InMemoryKnowledgeStore
from .sqlite import SQLiteKnowledgeStore


def create_knowledge_store(backend: str = "sqlite", **config: Any) -> KnowledgeStore:
    """
    Create a knowledge store instance.

    This factory function hides the implementation details of which
    backend is being used.

    Args:
        backend: Backend type ("sqlite" or "memory")
        **config: Backend-specific configuration
            For sqlite:
                - path: str | Path (default: './knowledge.db')

    Returns:
        Knowledge store (call connect() before use)

    Raises:
        ValueError: If backend type is not supported

    Example:
        >>> store = create_knowledge_store("sqlite", path="~/.pylogos/knowledge.db")
        >>> await store.connect()
    """
    if backend == "sqlite":
        return SQLiteKnowledgeStore(**config)
    if backend == "memory":
        return InMemoryKnowledgeStore()

    raise ValueError(
        f"Unsupported knowledge store backend: {backend}. "
        f"Supported backends: sqlite, memory"
    )
