"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

import asyncio
import json
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, Iterable, Optional

import httpx
import pytest

from nim_proxy.settings import ProxySettings

TEST_API_BASE = "http://nim.local/v1"
TEST_API_KEY = "test-key"


def make_settings(**overrides: Any) -> ProxySettings:
    """Build ProxySettings pointing at the fake upstream."""
    values: dict[str, Any] = {
        "api_base": TEST_API_BASE,
        "api_key": TEST_API_KEY,
        "timeout_seconds": 5.0,
    }
    values.update(overrides)
    return ProxySettings(**values)


def sse_bytes(*events: Any, done: bool = True) -> bytes:
    """Encode payloads as an upstream SSE body."""
    parts = []
    for event in events:
        data = event if isinstance(event, str) else json.dumps(event)
        parts.append(f"data: {data}\n\n")
    if done:
        parts.append("data: [DONE]\n\n")
    return "".join(parts).encode("utf-8")


def chunk_chunks(data: bytes, sizes: Iterable[int]) -> list[bytes]:
    """Split data at the given chunk sizes; the remainder forms a last chunk."""
    chunks = []
    offset = 0
    for size in sizes:
        if offset >= len(data):
            break
        chunks.append(data[offset:offset + size])
        offset += size
    if offset < len(data):
        chunks.append(data[offset:])
    return chunks


async def _iterate(
    chunks: list[bytes], error: Optional[Exception], delay: float = 0.0
) -> AsyncIterator[bytes]:
    for chunk in chunks:
        if delay:
            await asyncio.sleep(delay)
        yield chunk
    if error is not None:
        raise error


class FakeUpstream:
    """Queue-driven stand-in for the NIM API, served through httpx.MockTransport.

    Each queued item is either an ``httpx.Response`` factory or an exception
    to raise. Every received request is recorded (with its parsed JSON body).
    """

    def __init__(self) -> None:
        self._queue: Deque[Callable[[httpx.Request], httpx.Response]] = deque()
        self.requests: list[httpx.Request] = []
        self.bodies: list[dict[str, Any]] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(json.loads(request.content or b"{}"))
        if not self._queue:
            return httpx.Response(500, json={"error": {"message": "nothing queued"}})
        return self._queue.popleft()(request)

    def enqueue_json(self, body: Any, status_code: int = 200) -> None:
        self._queue.append(lambda request: httpx.Response(status_code, json=body))

    def enqueue_text(self, text: str, status_code: int = 200) -> None:
        self._queue.append(
            lambda request: httpx.Response(
                status_code, text=text, headers={"content-type": "text/plain"}
            )
        )

    def enqueue_stream(
        self,
        chunks: list[bytes],
        status_code: int = 200,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        def _respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                status_code,
                headers={"content-type": "text/event-stream"},
                content=_iterate(list(chunks), error, delay),
            )

        self._queue.append(_respond)

    def enqueue_error(self, exc_factory: Callable[[httpx.Request], Exception]) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc_factory(request)

        self._queue.append(_raise)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def chat_completion_body() -> dict[str, Any]:
    return {
        "id": "nim-123",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "qwen/qwen3-coder-480b-a35b-instruct",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": "Hello there"},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
    }
