from .base import WireCodec
from .models import GeminiConfig, LocalConfig, OpenAIConfig
from .providers import GeminiCodec, OpenAICodec


def create_codec(config: OpenAIConfig | GeminiConfig | LocalConfig) -> WireCodec:
    """Create the wire codec for a provider configuration.

    This factory function hides which codec speaks which provider's protocol.
    Local servers are OpenAI-compatible and share that codec.

    Args:
        config: Provider configuration variant

    Returns:
        Codec instance for the provider

    Raises:
        ValueError: If the configuration variant is not supported

    Examples:
        >>> codec = create_codec(GeminiConfig(api_key="..."))
        >>> request = codec.build_request(config, messages, params)
    """
    match config:
        case OpenAIConfig() | LocalConfig():
            return OpenAICodec()
        case GeminiConfig():
            return GeminiCodec()
        case _:
            raise ValueError(f"Unsupported provider config: {type(config).__name__}")
