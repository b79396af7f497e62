"""Data models for message persistence."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ..config import AUTHOR_AI


class StoredMessage(BaseModel):
    """A chat message as written to durable storage."""

    model_config = ConfigDict(frozen=True)

    author: str = Field(description="'me', 'AI' or 'System'")
    content: str = ""
    image_url: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_assistant(self) -> bool:
        return self.author == AUTHOR_AI

    @field_serializer("timestamp")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format."""
        return value.isoformat()
