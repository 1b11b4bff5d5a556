"""Shared test fixtures for the inference relay."""

from __future__ import annotations

import httpx
import pytest

from core.config import Config
from core.routes import BearerHeader, CustomHeader, RouteEntry, RouteTable, build_route_table

TEST_KEYS = {
    "OPENAI_API_KEY": "sk-openai-test",  # pragma: allowlist secret
    "ANTHROPIC_API_KEY": "sk-ant-test",  # pragma: allowlist secret
    "GEMINI_API_KEY": "gem-test",  # pragma: allowlist secret
    "GROQ_API_KEY": "gsk-test",  # pragma: allowlist secret
    "XAI_API_KEY": "xai-test",  # pragma: allowlist secret
}


class RecordingLogger:
    """RequestLogger that keeps every event in memory."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, str]] = []
        self.responses: list[tuple[str, str, int]] = []
        self.errors: list[tuple[str, int, str]] = []

    def log_request(self, route: str, method: str, url: str) -> None:
        self.requests.append((route, method, url))

    def log_response(self, route: str, method: str, status: int) -> None:
        self.responses.append((route, method, status))

    def log_error(self, route: str, status: int, message: str) -> None:
        self.errors.append((route, status, message))


class UpstreamRecorder:
    """Synthetic upstream for httpx.MockTransport that records what it receives."""

    def __init__(self, handler=None) -> None:
        self.calls: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self._handler is not None:
            return self._handler(request)
        return stream_response(200, b'{"ok": true}', {"content-type": "application/json"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_entry(
    prefix: str = "/claude",
    upstream_base: str = "https://api.anthropic.com",
    version_segment: str = "/v1",
    credential_strategy=None,
    api_key: str | None = "sk-test",  # pragma: allowlist secret
    name: str | None = None,
) -> RouteEntry:
    return RouteEntry(
        name=name or prefix.strip("/"),
        prefix=prefix,
        upstream_base=upstream_base,
        version_segment=version_segment,
        credential_strategy=credential_strategy or BearerHeader(),
        api_key=api_key,
    )


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def route_table(config: Config) -> RouteTable:
    """Canonical route table with every key configured."""
    return build_route_table(config, TEST_KEYS)


@pytest.fixture
def gemini_entry() -> RouteEntry:
    return make_entry(
        prefix="/gemini",
        upstream_base="https://generativelanguage.googleapis.com",
        version_segment="/v1beta",
        credential_strategy=CustomHeader("x-goog-api-key"),
        api_key="gem-test",  # pragma: allowlist secret
    )


def stream_response(
    status_code: int = 200,
    content: bytes = b"",
    headers=None,
) -> httpx.Response:
    """Response whose body is still an unread stream, as it is off the network."""
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(content))
