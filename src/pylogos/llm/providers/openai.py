"""OpenAI-compatible wire codec.

Covers OpenAI itself, OpenAI-compatible hosted services and local servers such
as Ollama. Local servers may stream NDJSON lines whose text sits under a
top-level ``message`` object instead of ``choices``.
"""

import json
from collections.abc import Sequence
from typing import Any

from ..base import WireCodec, ensure_messages
from ..models import ChatMessage, GenerationParams, ImagePart, LocalConfig, OpenAIConfig, WireRequest


class OpenAICodec(WireCodec):
    """Chat Completions encoding.

    Hidden design decisions:
    - Text-only messages use a plain string ``content``
    - Messages with images switch to an array of typed content blocks
    - Unset optional parameters are omitted from the body
    """

    def build_request(
        self,
        config: OpenAIConfig | LocalConfig,
        messages: Sequence[ChatMessage],
        params: GenerationParams,
        *,
        stream: bool = True
    ) -> WireRequest:
        ensure_messages(messages)

        body: dict[str, Any] = {
            "model": params.model,
            "messages": [self._encode_message(message) for message in messages],
            "stream": stream,
        }
        if params.temperature is not None:
            body["temperature"] = params.temperature
        if params.top_p is not None:
            body["top_p"] = params.top_p
        if params.max_tokens is not None:
            body["max_tokens"] = params.max_tokens
        body.update(params.extra_body)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key}",
            **params.extra_headers,
        }
        url = config.base_url.rstrip("/") + config.chat_completions_path

        return WireRequest(url=url, headers=headers, json_body=body)

    def _encode_message(self, message: ChatMessage) -> dict[str, Any]:
        if not message.has_images:
            return {"role": message.role, "content": message.text_content()}

        blocks = []
        for part in message.parts:
            if isinstance(part, ImagePart):
                blocks.append({"type": "image_url", "image_url": {"url": part.url}})
            else:
                blocks.append({"type": "text", "text": part.text})
        return {"role": message.role, "content": blocks}

    def parse_payload(self, payload: str) -> str | None:
        payload = payload.strip()
        if not payload or self.is_terminal(payload):
            return None

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None

        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            choice = choices[0] if isinstance(choices[0], dict) else {}
            for key in ("delta", "message"):
                content = _content_of(choice.get(key))
                if content is not None:
                    return content
            return None

        # Ollama /api/chat NDJSON
        return _content_of(data.get("message"))


def _content_of(node: Any) -> str | None:
    if isinstance(node, dict):
        content = node.get("content")
        if isinstance(content, str):
            return content
    return None
