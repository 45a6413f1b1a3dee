"""Shared fixtures for the stream client tests.

Nothing here touches the network: streams are built in memory as SSE-style
`data: {...}` lines and fed back in arbitrary chunk sizes.
"""

import json
from typing import AsyncIterator, Callable

import pytest

from article_stream.core.config import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(BACKEND_BASE_URL="http://backend.test", DEFAULT_UI_LANGUAGE="en")


@pytest.fixture
def sse() -> Callable[[dict], bytes]:
    """Encode one envelope the way the backend writes it."""

    def _encode(envelope: dict) -> bytes:
        return f"data: {json.dumps(envelope, ensure_ascii=False)}\n\n".encode("utf-8")

    return _encode


@pytest.fixture
def chunked() -> Callable[[bytes, int], AsyncIterator[bytes]]:
    """Split a byte string into an async iterator of fixed-size chunks."""

    def _split(data: bytes, size: int) -> AsyncIterator[bytes]:
        async def _gen():
            for i in range(0, len(data), size):
                yield data[i : i + size]

        return _gen()

    return _split


@pytest.fixture
def agent_event() -> Callable[..., dict]:
    def _event(agent_id: str, message: str = "working", kind: str = "log") -> dict:
        return {
            "type": "event",
            "data": {
                "id": f"evt-{agent_id}",
                "agentId": agent_id,
                "type": kind,
                "timestamp": 1700000000000,
                "message": message,
            },
        }

    return _event
