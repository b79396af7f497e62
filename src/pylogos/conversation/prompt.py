"""Request assembly for a user turn.

Hidden design decisions:
- Which prior messages are sent as history
- How retrieved context is framed
- How the agent template rewrites the user's text
"""

import re

from ..config import AUTHOR_AI, AUTHOR_ME, HISTORY_WINDOW, TEMPLATE_PLACEHOLDER
from ..llm.content import join_parts, split_image_markers
from ..llm.models import ChatMessage, ImagePart, MessagePart, TextPart
from ..persistence.models import StoredMessage
from .models import Agent, UiMessage

_AUTO_LOOP_PREFIX = re.compile(r"^\[Auto-Loop \d+\] ")


def auto_loop_display(text: str, loop_count: int) -> str:
    return f"[Auto-Loop {loop_count}] {text}"


def strip_auto_loop_prefix(text: str) -> str:
    return _AUTO_LOOP_PREFIX.sub("", text, count=1)


def augment_with_context(context: str, question: str) -> str:
    """Frame retrieved knowledge ahead of the user's question."""
    return f"[Context from Knowledge Base]\n{context}\n\n[User Question]\n{question}"


def render_template(template: str, text: str) -> str:
    """Substitute text into an agent template; no placeholder means no template."""
    if not template or TEMPLATE_PLACEHOLDER not in template:
        return text
    return template.replace(TEMPLATE_PLACEHOLDER, text)


def build_user_parts(text: str, image_url: str | None = None) -> tuple[MessagePart, ...]:
    parts: list[MessagePart] = [TextPart(text=text)]
    if image_url:
        parts.append(ImagePart(url=image_url))
    return tuple(parts)


def to_chat_message(message: UiMessage) -> ChatMessage:
    """Convert a displayed message into a request message.

    Image markers inside stored content are re-split into image parts.
    """
    role = "user" if message.author == AUTHOR_ME else "assistant"
    parts = split_image_markers(message.content)
    if message.image_url:
        parts.append(ImagePart(url=message.image_url))
    return ChatMessage(role=role, parts=tuple(parts))


def build_history(prior: list[UiMessage], window: int = HISTORY_WINDOW) -> list[ChatMessage]:
    """Trailing window of prior turns.

    Args:
        prior: Messages that precede the current user turn
        window: Maximum number of messages kept

    Returns:
        Request messages, oldest first. System notices, loading placeholders
        and empty messages are skipped.
    """
    turns = [
        message for message in prior
        if message.author in (AUTHOR_ME, AUTHOR_AI)
        and not message.is_loading
        and (message.content.strip() or message.image_url)
    ]
    return [to_chat_message(message) for message in turns[-window:]] if window > 0 else []


def build_request_messages(
    agent: Agent,
    history: list[ChatMessage],
    current: ChatMessage
) -> list[ChatMessage]:
    """System prompt, few-shot presets, history, then the current turn."""
    messages: list[ChatMessage] = []
    if agent.system_prompt.strip():
        messages.append(ChatMessage.text("system", agent.system_prompt))
    messages.extend(agent.preset_messages)
    messages.extend(history)
    messages.append(current)
    return messages


def to_stored(message: UiMessage) -> StoredMessage:
    """Flatten a displayed message for persistence, images as in-band markers."""
    content = message.content
    if message.image_url:
        content = join_parts(build_user_parts(content, message.image_url))
    return StoredMessage(author=message.author, content=content, timestamp=message.timestamp)


def from_stored(item: StoredMessage) -> UiMessage:
    """Rebuild a displayed message from persistence."""
    parts = split_image_markers(item.content)
    images = [part.url for part in parts if isinstance(part, ImagePart)]
    text = "".join(part.text for part in parts if isinstance(part, TextPart))
    return UiMessage(
        author=item.author,
        content=text,
        timestamp=item.timestamp,
        image_url=item.image_url or (images[0] if images else None)
    )
