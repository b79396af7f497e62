"""Shared stream clients per provider endpoint.

This module hides:
- Client lifecycle management
- Lazy creation under concurrent access
- Proxy application at client build time
"""

import asyncio
import logging

import httpx

from ..llm.models import GeminiConfig, LocalConfig, OpenAIConfig
from .sse import SseClient

logger = logging.getLogger(__name__)


class TransportPool:
    """One long-lived SseClient per (base URL, proxy) endpoint.

    Clients are created once and reused by every session that talks to the
    same endpoint. Safe for concurrent access from multiple tasks.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize the pool.

        Args:
            transport: Custom httpx transport handed to every client (tests)
        """
        self._transport = transport
        self._lock = asyncio.Lock()
        self._clients: dict[str, SseClient] = {}

    async def get(self, config: OpenAIConfig | GeminiConfig | LocalConfig) -> SseClient:
        """Get or create the client for a provider's endpoint."""
        key = config.endpoint_key
        async with self._lock:
            if key not in self._clients:
                proxy = config.proxy.url if config.proxy else None
                self._clients[key] = SseClient(proxy=proxy, transport=self._transport)
                logger.debug("Created stream client for %s", key)
            return self._clients[key]

    def cancel(self, task_id: str) -> None:
        """Cancel task_id on whichever client is running it."""
        for client in self._clients.values():
            client.cancel(task_id)

    def __len__(self) -> int:
        return len(self._clients)

    async def close_all(self) -> None:
        """Close all pooled clients."""
        async with self._lock:
            for client in self._clients.values():
                await client.aclose()
            self._clients.clear()
