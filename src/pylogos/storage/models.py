"""Data models for the knowledge store."""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KnowledgeChunk(BaseModel):
    """A stored slice of an ingested document."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    source_filename: str = Field(description="Name of the document the chunk came from")
    content: str = Field(description="Chunk text")
    created_at: datetime = Field(default_factory=_utcnow)

    @field_serializer("created_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format."""
        return value.isoformat()


class SourceSummary(BaseModel):
    """One ingested document as seen by the store."""

    filename: str
    chunk_count: int = Field(ge=0)
    last_ingested: datetime


class StorageStats(BaseModel):
    """Knowledge store statistics."""

    total_chunks: int = Field(ge=0)
    total_sources: int = Field(ge=0)
    total_size_bytes: int = Field(ge=0)
    last_indexed: datetime | None = None

    @field_serializer("last_indexed")
    def serialize_datetime(self, value: datetime | None) -> str | None:
        """Serialize datetime to ISO format."""
        return value.isoformat() if value else None
