from .gemini import GeminiCodec
from .openai import OpenAICodec

__all__ = ["GeminiCodec", "OpenAICodec"]
