from .base import MessagePersistenceGateway
from .factory import create_persistence_gateway
from .in_memory import InMemoryPersistenceGateway
from .models import StoredMessage
from .noop import NoOpPersistenceGateway
from .sqlite import SQLitePersistenceGateway

__all__ = [
    "MessagePersistenceGateway",
    "create_persistence_gateway",
    "InMemoryPersistenceGateway",
    "NoOpPersistenceGateway",
    "SQLitePersistenceGateway",
    "StoredMessage",
]
