"""Unit tests for the wire codecs, image markers and error mapping."""
import json

import httpx
import pytest
from hypothesis import given
from hypothesis import strategies as st

from pylogos.llm import (
    AuthenticationError,
    ChatMessage,
    GeminiCodec,
    GeminiConfig,
    GenerationParams,
    ImagePart,
    LocalConfig,
    NetworkError,
    OpenAICodec,
    OpenAIConfig,
    RateLimitError,
    RequestError,
    ServerError,
    TextPart,
    UnknownError,
    WireCodec,
    create_codec,
    decode_stream,
    describe_error,
    error_for_status,
    join_parts,
    split_image_markers,
    wrap_transport_error,
)

DATA_URI = "data:image/png;base64,iVBORw0KGgo="


async def _payloads(*items: str):
    for item in items:
        yield item


class TestWireCodec:
    """Tests for WireCodec interface."""

    def test_wire_codec_is_abstract(self):
        """Test that WireCodec cannot be instantiated directly."""
        with pytest.raises(TypeError):
            WireCodec()  # type: ignore

    def test_create_codec_dispatches_on_config(self):
        assert isinstance(create_codec(OpenAIConfig(api_key="k")), OpenAICodec)
        assert isinstance(create_codec(LocalConfig()), OpenAICodec)
        assert isinstance(create_codec(GeminiConfig(api_key="k")), GeminiCodec)

    def test_create_codec_rejects_unknown_config(self):
        with pytest.raises(ValueError):
            create_codec("openai")  # type: ignore

    @pytest.mark.parametrize("codec", [OpenAICodec(), GeminiCodec()])
    def test_empty_messages_rejected(self, codec):
        config = OpenAIConfig(api_key="k") if isinstance(codec, OpenAICodec) else GeminiConfig(api_key="k")
        with pytest.raises(ValueError):
            codec.build_request(config, [], GenerationParams(model="m"))

    @pytest.mark.parametrize("codec", [OpenAICodec(), GeminiCodec()])
    def test_terminal_sentinel(self, codec):
        assert codec.is_terminal("[DONE]")
        assert codec.is_terminal(" [DONE] ")
        assert not codec.is_terminal('{"a": 1}')


class TestOpenAICodec:
    """Tests for the OpenAI-compatible encoding."""

    def test_build_text_request(self):
        config = OpenAIConfig(api_key="sk-1", base_url="https://api.example.com/v1/")
        messages = [ChatMessage.text("system", "be brief"), ChatMessage.text("user", "hi")]
        params = GenerationParams(model="gpt-4o-mini", temperature=0.7, max_tokens=50)

        request = OpenAICodec().build_request(config, messages, params)

        assert request.method == "POST"
        assert request.url == "https://api.example.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-1"
        assert request.json_body == {
            "model": "gpt-4o-mini",
            "messages": [
                {"role": "system", "content": "be brief"},
                {"role": "user", "content": "hi"},
            ],
            "stream": True,
            "temperature": 0.7,
            "max_tokens": 50,
        }

    def test_unset_parameters_omitted(self):
        request = OpenAICodec().build_request(
            OpenAIConfig(api_key="k"),
            [ChatMessage.text("user", "hi")],
            GenerationParams(model="m")
        )
        assert "temperature" not in request.json_body
        assert "top_p" not in request.json_body
        assert "max_tokens" not in request.json_body

    def test_extra_body_and_headers_merged(self):
        params = GenerationParams(
            model="m",
            extra_body={"seed": 7, "stream": False},
            extra_headers={"X-Org": "acme"}
        )
        request = OpenAICodec().build_request(OpenAIConfig(api_key="k"), [ChatMessage.text("user", "hi")], params)
        assert request.json_body["seed"] == 7
        assert request.json_body["stream"] is False
        assert request.headers["X-Org"] == "acme"

    def test_images_switch_to_content_blocks(self):
        message = ChatMessage(role="user", parts=(TextPart(text="what is this?"), ImagePart(url=DATA_URI)))
        request = OpenAICodec().build_request(OpenAIConfig(api_key="k"), [message], GenerationParams(model="m"))

        assert request.json_body["messages"][0]["content"] == [
            {"type": "text", "text": "what is this?"},
            {"type": "image_url", "image_url": {"url": DATA_URI}},
        ]

    def test_local_provider_uses_chat_path(self):
        request = OpenAICodec().build_request(
            LocalConfig(base_url="http://localhost:11434"),
            [ChatMessage.text("user", "hi")],
            GenerationParams(model="llama3")
        )
        assert request.url == "http://localhost:11434/api/chat"

    def test_parse_delta(self):
        payload = json.dumps({"choices": [{"delta": {"content": "Hel"}}]})
        assert OpenAICodec().parse_payload(payload) == "Hel"

    def test_parse_message_fallbacks(self):
        codec = OpenAICodec()
        assert codec.parse_payload(json.dumps({"choices": [{"message": {"content": "full"}}]})) == "full"
        assert codec.parse_payload(json.dumps({"message": {"role": "assistant", "content": "nd"}})) == "nd"

    @pytest.mark.parametrize("payload", ["", "   ", "[DONE]", "not json", "[1, 2]", '{"choices": []}', '{"choices": [{"delta": {}}]}'])
    def test_parse_returns_none_without_text(self, payload):
        assert OpenAICodec().parse_payload(payload) is None

    @given(st.text())
    def test_parse_never_raises(self, payload: str):
        """Property test: arbitrary payloads never raise."""
        result = OpenAICodec().parse_payload(payload)
        assert result is None or isinstance(result, str)

    @pytest.mark.asyncio
    async def test_stream_round_trip(self):
        """Two deltas followed by [DONE] decode to the joined text."""
        codec = OpenAICodec()
        payloads = _payloads(
            json.dumps({"choices": [{"delta": {"content": "Hello"}}]}),
            json.dumps({"choices": [{"delta": {"content": " world"}}]}),
            "[DONE]",
            json.dumps({"choices": [{"delta": {"content": "ignored"}}]}),
        )
        deltas = [delta async for delta in decode_stream(codec, payloads)]
        assert "".join(deltas) == "Hello world"


class TestGeminiCodec:
    """Tests for the Gemini encoding."""

    def test_build_request(self):
        config = GeminiConfig(api_key="g-key", base_url="https://gemini.example.com/v1beta")
        messages = [
            ChatMessage.text("system", "rules"),
            ChatMessage.text("user", "hi"),
            ChatMessage.text("assistant", "hello"),
        ]
        params = GenerationParams(model="gemini-2.5-flash", temperature=0.5, max_tokens=100, top_p=0.9)

        request = GeminiCodec().build_request(config, messages, params)

        assert request.url == (
            "https://gemini.example.com/v1beta/models/gemini-2.5-flash"
            ":streamGenerateContent?alt=sse&key=g-key"
        )
        assert [content["role"] for content in request.json_body["contents"]] == ["model", "user", "model"]
        assert request.json_body["contents"][1]["parts"] == [{"text": "hi"}]
        assert request.json_body["generationConfig"] == {
            "temperature": 0.5,
            "maxOutputTokens": 100,
            "topP": 0.9,
        }

    def test_images_sent_inline(self):
        message = ChatMessage(
            role="user",
            parts=(
                TextPart(text="look"),
                ImagePart(url=DATA_URI),
                ImagePart(url="https://example.com/cat.png"),
            )
        )
        request = GeminiCodec().build_request(GeminiConfig(api_key="k"), [message], GenerationParams(model="m"))

        assert request.json_body["contents"][0]["parts"] == [
            {"text": "look"},
            {"inline_data": {"mime_type": "image/png", "data": "iVBORw0KGgo="}},
        ]

    def test_parse_payload(self):
        payload = json.dumps({"candidates": [{"content": {"parts": [{"text": "Bonjour"}]}}]})
        assert GeminiCodec().parse_payload(payload) == "Bonjour"

    @pytest.mark.parametrize("payload", ["", "[DONE]", "{", '{"candidates": []}', '{"candidates": [{"content": {}}]}'])
    def test_parse_returns_none_without_text(self, payload):
        assert GeminiCodec().parse_payload(payload) is None


class TestImageMarkers:
    """Tests for in-band image markers."""

    def test_split_text_only(self):
        assert split_image_markers("plain") == [TextPart(text="plain")]
        assert split_image_markers("") == []

    def test_split_marker(self):
        text = f"before [image:{DATA_URI}] after"
        assert split_image_markers(text) == [
            TextPart(text="before "),
            ImagePart(url=DATA_URI),
            TextPart(text=" after"),
        ]

    def test_unterminated_marker_kept_as_text(self):
        text = "see [image:data:image/png;base64,abc"
        assert split_image_markers(text) == [TextPart(text="see "), TextPart(text="[image:data:image/png;base64,abc")]

    def test_non_data_marker_is_text(self):
        text = "[image:https://example.com/a.png]"
        assert split_image_markers(text) == [TextPart(text=text)]

    @given(st.text())
    def test_split_join_is_lossless(self, text: str):
        """Property test: splitting then joining reproduces the input."""
        assert join_parts(split_image_markers(text)) == text

    def test_join_with_image(self):
        assert join_parts([TextPart(text="hi "), ImagePart(url=DATA_URI)]) == f"hi [image:{DATA_URI}]"


class TestErrors:
    """Tests for typed error mapping."""

    @pytest.mark.parametrize(
        "status,error_type",
        [
            (401, AuthenticationError),
            (403, AuthenticationError),
            (429, RateLimitError),
            (400, RequestError),
            (404, RequestError),
            (500, ServerError),
            (503, ServerError),
            (302, UnknownError),
        ]
    )
    def test_error_for_status(self, status, error_type):
        error = error_for_status(status, "details")
        assert isinstance(error, error_type)
        assert error.status_code == status
        assert error.message == "details"

    def test_error_for_status_without_body(self):
        assert error_for_status(500).message == "HTTP error: 500"

    def test_wrap_timeout_and_connect_errors(self):
        assert isinstance(wrap_transport_error(httpx.ReadTimeout("slow")), NetworkError)
        assert isinstance(wrap_transport_error(httpx.ConnectError("refused")), NetworkError)
        assert isinstance(wrap_transport_error(httpx.ProxyError("proxy down")), NetworkError)

    def test_wrap_other_errors(self):
        assert isinstance(wrap_transport_error(httpx.DecodingError("bad")), UnknownError)
        assert isinstance(wrap_transport_error(RuntimeError("boom")), UnknownError)

    def test_wrap_keeps_typed_errors(self):
        error = RateLimitError()
        assert wrap_transport_error(error) is error

    def test_describe_network_wording(self):
        assert "timeout" in describe_error(NetworkError("Request timed out: read")).lower()
        assert "switching networks" in describe_error(NetworkError("Connection failed: refused"))

    def test_describe_other_kinds(self):
        assert "API key" in describe_error(AuthenticationError())
        assert "retry later" in describe_error(RateLimitError())
        assert "Server error" in describe_error(ServerError())
        assert "bad field" in describe_error(RequestError("bad field"))
        assert "unexpected" in describe_error(UnknownError())
        assert "System error" in describe_error(KeyError("x"))
