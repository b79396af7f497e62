from pydantic import BaseModel, Field

from ..storage.models import KnowledgeChunk


class ScoredChunk(BaseModel):
    """A recalled chunk with its re-ranking score."""

    chunk: KnowledgeChunk
    score: float = Field(ge=0.0, le=1.0, description="Fraction of query terms found in the chunk")
    rank: int = Field(ge=1, description="Position in the full-text recall order")


class RetrievalResult(BaseModel):
    """Context assembled for one query."""

    augmented_context: str = Field(default="", description="Formatted context for the prompt")
    explain_trace: str = Field(default="", description="Diagnostic trace, never sent to the model")
    hits: list[ScoredChunk] = Field(default_factory=list, description="Selected chunks, best first")

    @property
    def is_empty(self) -> bool:
        return not self.augmented_context
