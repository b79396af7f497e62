from .engine import RetrievalEngine, coverage_score, extract_terms
from .models import RetrievalResult, ScoredChunk

__all__ = ["RetrievalEngine", "RetrievalResult", "ScoredChunk", "coverage_score", "extract_terms"]
