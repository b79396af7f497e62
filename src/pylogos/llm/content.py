"""In-band image markers.

Conversation history is stored as flat text. Images travel inside that text as
``[image:<data-uri>]`` markers; this module converts between the flat form and
structured message parts.
"""

import base64

from .models import ChatMessage, ImagePart, MessagePart, Role, TextPart

IMAGE_MARKER_PREFIX = "[image:"
_DATA_IMAGE_MARKER = "[image:data:image/"


def to_data_uri(data: bytes, mime_type: str = "image/jpeg") -> str:
    """Encode raw image bytes as a data URI."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def parse_data_uri(uri: str) -> tuple[str, str] | None:
    """Split a data URI into (mime_type, base64 payload).

    Returns:
        None if the URI is not a base64 data URI
    """
    if not uri.startswith("data:") or "base64," not in uri:
        return None
    header, _, data = uri.partition("base64,")
    mime_type = header[len("data:"):].split(";", 1)[0] or "application/octet-stream"
    return mime_type, data


def split_image_markers(text: str) -> list[MessagePart]:
    """Split flat text into text and image parts.

    Only markers wrapping a ``data:image/`` URI are recognized. An unterminated
    marker is kept verbatim as text, so ``join_parts(split_image_markers(t)) == t``
    for any ``t``.
    """
    if _DATA_IMAGE_MARKER not in text:
        return [TextPart(text=text)] if text else []

    parts: list[MessagePart] = []
    index = 0
    while index < len(text):
        start = text.find(_DATA_IMAGE_MARKER, index)
        if start == -1:
            parts.append(TextPart(text=text[index:]))
            break

        if start > index:
            parts.append(TextPart(text=text[index:start]))

        end = text.find("]", start)
        if end == -1:
            parts.append(TextPart(text=text[start:]))
            break

        parts.append(ImagePart(url=text[start + len(IMAGE_MARKER_PREFIX):end]))
        index = end + 1

    return parts


def join_parts(parts: list[MessagePart] | tuple[MessagePart, ...]) -> str:
    """Render parts back into flat text with in-band image markers."""
    chunks = []
    for part in parts:
        if isinstance(part, TextPart):
            chunks.append(part.text)
        else:
            chunks.append(f"{IMAGE_MARKER_PREFIX}{part.url}]")
    return "".join(chunks)


def message_from_flat(role: Role, content: str) -> ChatMessage:
    """Build a structured message from flat stored content."""
    return ChatMessage(role=role, parts=tuple(split_image_markers(content)))
