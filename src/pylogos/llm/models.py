from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..config import GEMINI_BASE_URL, LOCAL_BASE_URL, OPENAI_BASE_URL

Role = Literal["system", "user", "assistant", "tool"]


class TextPart(BaseModel):
    """Plain text segment of a message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Image segment of a message, referenced by URL or data URI."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    url: str = Field(description="http(s) URL or data:<mime>;base64,<data> URI")


MessagePart = Annotated[TextPart | ImagePart, Field(discriminator="type")]


class ChatMessage(BaseModel):
    """Represents a chat message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Role of the message sender")
    parts: tuple[MessagePart, ...] = Field(default=(), description="Ordered content parts")

    @classmethod
    def text(cls, role: Role, content: str) -> "ChatMessage":
        """Build a single-part text message."""
        return cls(role=role, parts=(TextPart(text=content),))

    @property
    def has_images(self) -> bool:
        return any(isinstance(part, ImagePart) for part in self.parts)

    def text_content(self) -> str:
        """Concatenate the text parts, ignoring images."""
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))


class NetworkProxy(BaseModel):
    """HTTP proxy applied when the transport client is built."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(ge=1, le=65535)
    scheme: Literal["http", "https", "socks5"] = "http"

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"


class GenerationParams(BaseModel):
    """Generation parameters sent with a request."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(description="Model identifier")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    extra_body: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional JSON fields merged into the request body"
    )
    extra_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Additional HTTP headers"
    )


class _ProviderConfigBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str = ""
    base_url: str = ""
    api_key: str = ""
    models: tuple[str, ...] = Field(default=(), description="Model ids available on this provider")
    proxy: NetworkProxy | None = None

    @property
    def endpoint_key(self) -> str:
        """Key identifying the transport endpoint (base URL and proxy)."""
        proxy = self.proxy.url if self.proxy else "direct"
        return f"{self.base_url.rstrip('/')}|{proxy}"


class OpenAIConfig(_ProviderConfigBase):
    """OpenAI-compatible endpoint (OpenAI, DeepSeek, SiliconFlow, ...)."""

    kind: Literal["openai"] = "openai"
    name: str = "OpenAI"
    base_url: str = OPENAI_BASE_URL
    chat_completions_path: str = "/chat/completions"


class GeminiConfig(_ProviderConfigBase):
    """Google Gemini (AI Studio) endpoint."""

    kind: Literal["gemini"] = "gemini"
    name: str = "Gemini"
    base_url: str = GEMINI_BASE_URL


class LocalConfig(_ProviderConfigBase):
    """Local inference server speaking an OpenAI-style chat API (e.g. Ollama)."""

    kind: Literal["local"] = "local"
    name: str = "Local"
    api_key: str = "local"
    base_url: str = LOCAL_BASE_URL
    chat_completions_path: str = "/api/chat"


ProviderConfig = Annotated[OpenAIConfig | GeminiConfig | LocalConfig, Field(discriminator="kind")]


class WireRequest(BaseModel):
    """Provider-specific HTTP request produced by a codec."""

    model_config = ConfigDict(frozen=True)

    method: str = "POST"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    json_body: dict[str, Any] = Field(default_factory=dict)
