"""Server-sent event stream client.

Following Parnas principles, this module hides:
- HTTP client setup (timeouts, proxy)
- SSE line framing
- Cancellation of in-flight calls by task id
- Mapping of transport failures onto typed errors
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx

from ..config import CONNECT_TIMEOUT_SECONDS, STREAM_QUEUE_SIZE
from ..llm.errors import RequestCancelledError, error_for_status, wrap_transport_error
from ..llm.models import WireRequest

logger = logging.getLogger(__name__)

_END = object()
_CANCELLED = object()


def parse_sse_line(line: str) -> str | None:
    """Extract the payload of one stream line.

    Blank lines and ``:`` comments yield None. ``data:`` lines yield their
    value. Any other line is passed through unchanged so NDJSON endpoints
    work with the same client.
    """
    if not line.strip() or line.startswith(":"):
        return None
    if line.startswith("data:"):
        return line[len("data:"):].lstrip(" ")
    return line


@dataclass
class _ActiveCall:
    task_id: str
    queue: asyncio.Queue
    pump: asyncio.Task | None = None
    cancelled: bool = False


class SseClient:
    """Streams payloads from a provider endpoint.

    One client wraps one long-lived ``httpx.AsyncClient``. Each call is keyed
    by a task id; at most one call per id is active.

    Examples:
        >>> client = SseClient()
        >>> async for payload in client.open(request, task_id):
        ...     print(payload)
        >>> client.cancel(task_id)  # from another task
    """

    def __init__(
        self,
        proxy: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        queue_size: int = STREAM_QUEUE_SIZE
    ):
        """Initialize the client.

        Args:
            proxy: Proxy URL applied to every request of this client
            transport: Custom httpx transport (used by tests)
            http_client: Pre-built httpx client; overrides proxy and transport
            queue_size: Payloads buffered per call before reading must catch up
        """
        if http_client is None:
            kwargs: dict = {"timeout": httpx.Timeout(None, connect=CONNECT_TIMEOUT_SECONDS)}
            if proxy:
                kwargs["proxy"] = proxy
            if transport is not None:
                kwargs["transport"] = transport
            http_client = httpx.AsyncClient(**kwargs)
        self._client = http_client
        self._active: dict[str, _ActiveCall] = {}
        self._queue_size = queue_size

    def is_active(self, task_id: str) -> bool:
        return task_id in self._active

    async def open(self, request: WireRequest, task_id: str) -> AsyncIterator[str]:
        """Send the request and yield each payload of the reply.

        Nothing is sent until iteration starts.

        Raises:
            LLMError: Typed error for HTTP statuses and transport failures
            RequestCancelledError: If cancel(task_id) was called
        """
        self.cancel(task_id)

        call = _ActiveCall(task_id, asyncio.Queue(maxsize=self._queue_size))
        self._active[task_id] = call
        call.pump = asyncio.create_task(self._pump(request, call.queue))
        logger.debug("Stream %s opened: %s", task_id, request.url.split("?", 1)[0])

        try:
            while True:
                item = await call.queue.get()
                if call.cancelled or item is _CANCELLED:
                    raise RequestCancelledError()
                if item is _END:
                    break
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            if not call.pump.done():
                call.pump.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await call.pump
            if self._active.get(task_id) is call:
                del self._active[task_id]
            logger.debug("Stream %s closed", task_id)

    async def _pump(self, request: WireRequest, queue: asyncio.Queue) -> None:
        try:
            async with self._client.stream(
                request.method,
                request.url,
                headers=request.headers,
                json=request.json_body
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    await queue.put(error_for_status(response.status_code, body))
                    return

                async for line in response.aiter_lines():
                    payload = parse_sse_line(line)
                    if payload is not None:
                        await queue.put(payload)
            await queue.put(_END)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Stream transport failed: %s", e)
            await queue.put(wrap_transport_error(e))

    def cancel(self, task_id: str) -> None:
        """Abort the call for task_id. Unknown or finished ids are ignored."""
        call = self._active.get(task_id)
        if call is None or call.cancelled:
            return
        call.cancelled = True
        if call.pump is not None:
            call.pump.cancel()
        # Buffered payloads are dropped so the marker always fits.
        while not call.queue.empty():
            call.queue.get_nowait()
        call.queue.put_nowait(_CANCELLED)
        logger.debug("Stream %s cancelled", task_id)

    def cancel_all(self) -> None:
        for task_id in list(self._active):
            self.cancel(task_id)

    async def aclose(self) -> None:
        """Cancel every call and close the underlying HTTP client."""
        self.cancel_all()
        await self._client.aclose()

    async def __aenter__(self) -> "SseClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
