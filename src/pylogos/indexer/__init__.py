from .chunking import split_text_into_chunks
from .documents import SUPPORTED_EXTENSIONS, extract_text, is_supported

__all__ = ["split_text_into_chunks", "extract_text", "is_supported", "SUPPORTED_EXTENSIONS"]
