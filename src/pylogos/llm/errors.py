"""Typed errors for LLM requests.

Transport and protocol failures are wrapped into this hierarchy before they
reach the orchestrator. Hidden design decisions:
- Which HTTP status codes map to which error kind
- Which httpx exceptions count as network failures
- The user-visible wording for each kind
"""

from enum import Enum

import httpx


class ErrorKind(str, Enum):
    """Classification of a failed request."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    REQUEST = "request"
    SERVER = "server"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class LLMError(Exception):
    """Base class for request failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_message = "Unknown error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(message or self.default_message)
        self.status_code = status_code

    @property
    def message(self) -> str:
        return str(self)


class NetworkError(LLMError):
    kind = ErrorKind.NETWORK
    default_message = "Network connection failed"


class AuthenticationError(LLMError):
    kind = ErrorKind.AUTHENTICATION
    default_message = "Authentication failed"


class RateLimitError(LLMError):
    kind = ErrorKind.RATE_LIMIT
    default_message = "Rate limit reached"


class RequestError(LLMError):
    kind = ErrorKind.REQUEST
    default_message = "Invalid request"


class ServerError(LLMError):
    kind = ErrorKind.SERVER
    default_message = "Server error"


class RequestCancelledError(LLMError):
    """Raised to a stream consumer after an explicit cancel."""

    kind = ErrorKind.CANCELLED
    default_message = "Request cancelled"


class UnknownError(LLMError):
    kind = ErrorKind.UNKNOWN


def error_for_status(status_code: int, body: str = "") -> LLMError:
    """Map an HTTP error status to a typed error.

    Args:
        status_code: HTTP status of the failed response
        body: Response body, kept as the error message when present

    Returns:
        The error instance for the status (never raises)
    """
    message = body.strip() or f"HTTP error: {status_code}"

    if status_code in (401, 403):
        return AuthenticationError(message, status_code)
    if status_code == 429:
        return RateLimitError(message, status_code)
    if 400 <= status_code < 500:
        return RequestError(message, status_code)
    if 500 <= status_code < 600:
        return ServerError(message, status_code)
    return UnknownError(message, status_code)


def wrap_transport_error(exc: Exception) -> LLMError:
    """Wrap a transport exception so raw httpx errors never leak upward."""
    if isinstance(exc, LLMError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(f"Request timed out: {exc}")
    if isinstance(exc, (httpx.NetworkError, httpx.ProxyError)):
        return NetworkError(f"Connection failed: {exc}")
    if isinstance(exc, httpx.HTTPStatusError):
        return error_for_status(exc.response.status_code, exc.response.text)
    return UnknownError(f"Stream read failed: {exc}")


def describe_error(error: Exception) -> str:
    """Human-readable summary shown to the user for a failed request."""
    if isinstance(error, NetworkError):
        text = error.message.lower()
        if "timeout" in text or "timed out" in text:
            return "Network timeout. Check your connection or try again later."
        if "connection" in text or "connect" in text:
            return "Network error. Check your connection or try switching networks."
        return "Network error. Check your connection and try again."
    if isinstance(error, AuthenticationError):
        return "Authentication failed. Your API key is invalid or expired, please check it."
    if isinstance(error, RateLimitError):
        return "Too many requests. Rate limited, please retry later."
    if isinstance(error, ServerError):
        return "Server error. Please retry later or contact support."
    if isinstance(error, RequestError):
        return (
            f"Invalid request: {error.message or 'malformed request or parameters'}\n\n"
            "Please check your input or contact support."
        )
    if isinstance(error, LLMError):
        return "An unexpected error occurred. Please retry; contact support if it persists."
    return "System error. Please retry; contact support if it persists."
