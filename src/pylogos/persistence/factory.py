"""Factory for creating persistence gateways."""

from typing import Any

from .base import MessagePersistenceGateway


def create_persistence_gateway(
    backend: str = "memory",
    **kwargs: Any
) -> MessagePersistenceGateway:
    """Create a persistence gateway.

    Args:
        backend: Backend type ("noop", "memory" or "sqlite")
        **kwargs: Backend-specific configuration
            For sqlite:
                - path: str | Path (default: './pylogos_memory.db')

    Returns:
        MessagePersistenceGateway instance (call connect() before use)

    Raises:
        ValueError: If backend type is not supported
    """
    if backend == "noop":
        from .noop import NoOpPersistenceGateway
        return NoOpPersistenceGateway()

    elif backend == "memory":
        from .in_memory import InMemoryPersistenceGateway
        return InMemoryPersistenceGateway()

    elif backend == "sqlite":
        from .sqlite import SQLitePersistenceGateway
        return SQLitePersistenceGateway(**kwargs)

    raise ValueError(
        f"Unsupported persistence backend: {backend}. "
        f"Supported backends: noop, memory, sqlite"
    )
