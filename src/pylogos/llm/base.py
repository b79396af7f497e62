from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, AsyncIterator, Sequence

from ..config import SSE_DONE_TOKEN
from .models import ChatMessage, GenerationParams, WireRequest


class WireCodec(ABC):
    """Abstract base class for provider wire codecs.

    This module hides the design decision of how each provider encodes a chat
    request and decodes its streamed reply. Implementations must handle:
    - Endpoint URL and authentication header layout
    - Message and image encoding
    - Parameter naming
    - Extraction of the text delta from one stream payload

    Codecs are pure: they never perform I/O. The transport layer sends the
    WireRequest and feeds each payload back through parse_payload.
    """

    @abstractmethod
    def build_request(
        self,
        config,
        messages: Sequence[ChatMessage],
        params: GenerationParams,
        *,
        stream: bool = True
    ) -> WireRequest:
        """Encode a chat request.

        Args:
            config: Provider configuration (endpoint and credentials)
            messages: Conversation to send, oldest first
            params: Generation parameters
            stream: Whether to request a streamed reply

        Returns:
            WireRequest ready to be sent by the transport

        Raises:
            ValueError: If messages is empty
        """
        pass

    @abstractmethod
    def parse_payload(self, payload: str) -> str | None:
        """Extract the text delta from one stream payload.

        Args:
            payload: Content of one SSE data line (or one NDJSON line)

        Returns:
            The text fragment, or None when the payload carries no text.
            Never raises on malformed input.
        """
        pass

    def is_terminal(self, payload: str) -> bool:
        """Check whether a payload is the end-of-stream sentinel."""
        return payload.strip() == SSE_DONE_TOKEN


def ensure_messages(messages: Sequence[ChatMessage]) -> None:
    if not messages:
        raise ValueError("Cannot build a request without messages")


async def decode_stream(codec: WireCodec, payloads: AsyncIterable[str]) -> AsyncIterator[str]:
    """Turn raw payloads into text deltas, stopping at the terminal sentinel.

    The payload source is closed when decoding stops, so an early exit
    releases the underlying connection.
    """
    try:
        async for payload in payloads:
            if codec.is_terminal(payload):
                break
            delta = codec.parse_payload(payload)
            if delta:
                yield delta
    finally:
        aclose = getattr(payloads, "aclose", None)
        if aclose is not None:
            await aclose()
