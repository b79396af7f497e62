"""pylogos: streaming conversation engine with knowledge-base retrieval."""

__version__ = "0.1.0"
