import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..config import AUTHOR_AI, AUTHOR_ME, AUTHOR_SYSTEM, DEFAULT_MAX_LOOP_COUNT
from ..llm.content import to_data_uri
from ..llm.models import ChatMessage


class TurnPhase(str, Enum):
    """Lifecycle of one request."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class UiMessage(BaseModel):
    """A message as displayed in a session."""

    model_config = ConfigDict(frozen=True)

    author: str = Field(description="'me', 'AI' or 'System'")
    content: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    image_url: str | None = None
    is_loading: bool = False

    @property
    def is_assistant(self) -> bool:
        return self.author == AUTHOR_AI

    @property
    def is_user(self) -> bool:
        return self.author == AUTHOR_ME

    @property
    def is_system(self) -> bool:
        return self.author == AUTHOR_SYSTEM


class ImageAttachment(BaseModel):
    """Image attached to a user turn."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/jpeg"

    def to_data_uri(self) -> str:
        return to_data_uri(self.data, self.mime_type)


class Agent(BaseModel):
    """Persona applied to a session's requests."""

    model_config = ConfigDict(frozen=True)

    name: str = "Assistant"
    system_prompt: str = ""
    preset_messages: tuple[ChatMessage, ...] = Field(
        default=(),
        description="Few-shot messages sent before the history"
    )
    message_template: str = Field(
        default="",
        description="Template for the user's text; '{{ message }}' is replaced by the input"
    )


class SessionSettings(BaseModel):
    """Per-session generation and behavior settings."""

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=2000, ge=1)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    stream_response: bool = True
    char_delay_ms: int = Field(default=0, ge=0, description="Typing pacing per character; 0 disables")
    auto_loop_enabled: bool = False
    max_loop_count: int = Field(default=DEFAULT_MAX_LOOP_COUNT, ge=0)
    fallback_enabled: bool = True
    fallback_provider_id: str | None = None
    fallback_model_id: str | None = None
    retrieval_enabled: bool = True


@dataclass
class StreamTask:
    """Runtime record of one in-flight reply.

    ``text`` only grows until the task reaches a terminal phase.
    """

    task_id: str = field(default_factory=lambda: uuid4().hex)
    message_index: int = -1
    cancelled: bool = False
    timed_out: bool = False
    terminal: bool = False
    text: str = ""
    last_persisted_at: float = 0.0
    hint_shown: bool = False
    hint_job: asyncio.Task | None = None
    first_content: asyncio.Event = field(default_factory=asyncio.Event)

    def append(self, delta: str) -> None:
        self.text += delta
