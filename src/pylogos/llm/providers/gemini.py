"""Google Gemini wire codec.

Speaks the ``streamGenerateContent`` REST endpoint directly with ``alt=sse``.
Reference: https://ai.google.dev/api/generate-content
"""

import json
from collections.abc import Sequence
from typing import Any

from ..base import WireCodec, ensure_messages
from ..content import parse_data_uri
from ..models import ChatMessage, GeminiConfig, GenerationParams, ImagePart, WireRequest


class GeminiCodec(WireCodec):
    """Gemini encoding.

    Hidden design decisions:
    - Only ``user`` keeps its role; every other role is sent as ``model``
    - Images are sent inline; plain URLs cannot be and are dropped
    - Generation parameters live under ``generationConfig``
    """

    def build_request(
        self,
        config: GeminiConfig,
        messages: Sequence[ChatMessage],
        params: GenerationParams,
        *,
        stream: bool = True
    ) -> WireRequest:
        ensure_messages(messages)

        generation_config: dict[str, Any] = {}
        if params.temperature is not None:
            generation_config["temperature"] = params.temperature
        if params.max_tokens is not None:
            generation_config["maxOutputTokens"] = params.max_tokens
        if params.top_p is not None:
            generation_config["topP"] = params.top_p

        body: dict[str, Any] = {
            "contents": [self._encode_message(message) for message in messages],
        }
        if generation_config:
            body["generationConfig"] = generation_config
        body.update(params.extra_body)

        method = "streamGenerateContent?alt=sse&" if stream else "generateContent?"
        url = f"{config.base_url.rstrip('/')}/models/{params.model}:{method}key={config.api_key}"
        headers = {"Content-Type": "application/json", **params.extra_headers}

        return WireRequest(url=url, headers=headers, json_body=body)

    def _encode_message(self, message: ChatMessage) -> dict[str, Any]:
        parts: list[dict[str, Any]] = []
        for part in message.parts:
            if isinstance(part, ImagePart):
                inline = parse_data_uri(part.url)
                if inline is None:
                    continue
                mime_type, data = inline
                parts.append({"inline_data": {"mime_type": mime_type, "data": data}})
            else:
                parts.append({"text": part.text})

        return {
            "role": "user" if message.role == "user" else "model",
            "parts": parts,
        }

    def parse_payload(self, payload: str) -> str | None:
        payload = payload.strip()
        if not payload or self.is_terminal(payload):
            return None

        try:
            data = json.loads(payload)
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) else None
