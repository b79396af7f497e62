"""Pytest configuration and shared fixtures."""
import asyncio
import json
import os

import httpx
import pytest

from pylogos.llm import LocalConfig, OpenAIConfig


class _HangingStream(httpx.AsyncByteStream):
    """Response body that sends some bytes and then never finishes."""

    def __init__(self, head: bytes = b""):
        self._head = head

    async def __aiter__(self):
        if self._head:
            yield self._head
        await asyncio.Event().wait()


def _openai_event(delta: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": delta}}]}) + "\n\n"


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
        "gemini": os.getenv("GEMINI_API_KEY")
    }


@pytest.fixture
def primary_provider():
    """OpenAI-compatible provider served by the mock transport."""
    return OpenAIConfig(
        id="primary",
        name="Primary",
        api_key="sk-test",
        base_url="https://primary.test/v1",
        models=("gpt-test",)
    )


@pytest.fixture
def local_provider():
    """Local fallback provider served by the mock transport."""
    return LocalConfig(
        id="local",
        name="Local",
        base_url="http://local.test",
        models=("llama-test",)
    )


@pytest.fixture
def sse_response():
    """Build a streamed OpenAI-style response from text deltas."""
    def build(*deltas: str, done: bool = True) -> httpx.Response:
        body = "".join(_openai_event(delta) for delta in deltas)
        if done:
            body += "data: [DONE]\n\n"
        return httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            content=body.encode("utf-8")
        )
    return build


@pytest.fixture
def hanging_response():
    """Build a streamed response that emits the given deltas and then stalls."""
    def build(*deltas: str) -> httpx.Response:
        head = "".join(_openai_event(delta) for delta in deltas).encode("utf-8")
        return httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            stream=_HangingStream(head)
        )
    return build


@pytest.fixture
def wait_until():
    """Poll a predicate from inside the event loop."""
    async def wait(predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not reached in time")
            await asyncio.sleep(0.005)
    return wait


@pytest.fixture
def sample_document():
    """Return a small multi-paragraph document."""
    return (
        "Paris is the capital of France.\n\n"
        "Tokyo is the capital of Japan.\n\n"
        "The Seine flows through Paris."
    )
