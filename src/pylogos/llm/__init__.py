from .base import WireCodec, decode_stream
from .content import join_parts, split_image_markers, to_data_uri
from .errors import (
    AuthenticationError,
    ErrorKind,
    LLMError,
    NetworkError,
    RateLimitError,
    RequestCancelledError,
    RequestError,
    ServerError,
    UnknownError,
    describe_error,
    error_for_status,
    wrap_transport_error,
)
from .factory import create_codec
from .models import (
    ChatMessage,
    GeminiConfig,
    GenerationParams,
    ImagePart,
    LocalConfig,
    NetworkProxy,
    OpenAIConfig,
    ProviderConfig,
    TextPart,
    WireRequest,
)
from .providers import GeminiCodec, OpenAICodec

__all__ = [
    "WireCodec",
    "decode_stream",
    "create_codec",
    "join_parts",
    "split_image_markers",
    "to_data_uri",
    "ChatMessage",
    "TextPart",
    "ImagePart",
    "GenerationParams",
    "NetworkProxy",
    "OpenAIConfig",
    "GeminiConfig",
    "LocalConfig",
    "ProviderConfig",
    "WireRequest",
    "GeminiCodec",
    "OpenAICodec",
    "ErrorKind",
    "LLMError",
    "NetworkError",
    "AuthenticationError",
    "RateLimitError",
    "RequestError",
    "ServerError",
    "RequestCancelledError",
    "UnknownError",
    "error_for_status",
    "wrap_transport_error",
    "describe_error",
]
