"""Paragraph-aware text chunking.

Hidden design decisions:
- Paragraph boundaries are blank lines
- Paragraphs are packed greedily up to the chunk size
- A paragraph longer than the chunk size is hard-sliced
"""

import re

from ..config import DEFAULT_CHUNK_SIZE

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_JOINER = "\n\n"


def _slice(text: str, size: int) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


def split_text_into_chunks(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Split text into chunks of at most chunk_size characters.

    Args:
        text: Document text
        chunk_size: Maximum characters per chunk

    Returns:
        Ordered list of non-empty chunks

    Raises:
        ValueError: If chunk_size is not positive
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    chunks: list[str] = []
    current = ""

    for raw in _PARAGRAPH_BREAK.split(text):
        paragraph = raw.strip()
        if not paragraph:
            continue

        candidate_length = len(current) + len(_JOINER) + len(paragraph) if current else len(paragraph)
        if candidate_length > chunk_size:
            if current:
                chunks.append(current.strip())
                current = ""

            if len(paragraph) > chunk_size:
                chunks.extend(_slice(paragraph, chunk_size))
            else:
                current = paragraph
        else:
            current = f"{current}{_JOINER}{paragraph}" if current else paragraph

    if current.strip():
        chunks.append(current.strip())

    if not chunks and text.strip():
        chunks = [piece for piece in _slice(text, chunk_size) if piece.strip()]

    return chunks
