from .pool import TransportPool
from .sse import SseClient, parse_sse_line

__all__ = ["SseClient", "TransportPool", "parse_sse_line"]
