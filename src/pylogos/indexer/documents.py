"""Document text extraction.

Hidden design decisions:
- Using pypdf library for PDF extraction
- Which file types are treated as plain text
"""

import io
import logging
from pathlib import Path

from pypdf import PdfReader

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {".txt", ".md", ".markdown", ".rst", ".csv", ".log"}
SUPPORTED_EXTENSIONS = TEXT_EXTENSIONS | {".pdf"}


def is_supported(filename: str) -> bool:
    return Path(filename).suffix.lower() in SUPPORTED_EXTENSIONS


def extract_text(source: str | Path | bytes, filename: str | None = None) -> str:
    """Extract plain text from a document.

    Args:
        source: Path to the document, or its raw bytes
        filename: Name used to pick the format; defaults to the path name

    Returns:
        Extracted text (pages of a PDF are joined by blank lines)

    Raises:
        ValueError: If the file type is not supported
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        filename = filename or path.name
        data = path.read_bytes()
    else:
        data = source
        if filename is None:
            raise ValueError("filename is required when extracting from bytes")

    suffix = Path(filename).suffix.lower()
    if suffix == ".pdf":
        return _extract_pdf(data)
    if suffix in TEXT_EXTENSIONS:
        return data.decode("utf-8", errors="replace")

    raise ValueError(
        f"Unsupported document type: {suffix or filename}. "
        f"Supported types: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
    )


def _extract_pdf(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = []
    for page_num, page in enumerate(reader.pages, start=1):
        text = page.extract_text() or ""
        if text.strip():
            pages.append(text.strip())
        else:
            logger.debug("PDF page %d has no extractable text", page_num)
    return "\n\n".join(pages)
