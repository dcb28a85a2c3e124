from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from outbound import Client, HttpxTransport, MemoryQueue, SubmissionJob, configure, reset_settings


class StubServer:
    """Serve canned responses in order; the last one repeats."""

    def __init__(self) -> None:
        self.responses: list[Callable[[httpx.Request], httpx.Response]] = []
        self.requests: list[httpx.Request] = []

    def respond(
        self,
        status: int = 200,
        *,
        json_body: Any = None,
        content: bytes | str = b"",
        headers: dict[str, str] | None = None,
    ) -> StubServer:
        if json_body is not None:
            content = json.dumps(json_body)
            headers = {"Content-Type": "application/json", **(headers or {})}

        def build(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, headers=headers, content=content, request=request)

        self.responses.append(build)
        return self

    def fail(self, error: Exception) -> StubServer:
        def build(request: httpx.Request) -> httpx.Response:
            raise error

        self.responses.append(build)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, request=request)
        build = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return build(request)

    def transport(self) -> HttpxTransport:
        return HttpxTransport(httpx.Client(transport=httpx.MockTransport(self.handle)))


@pytest.fixture(autouse=True)
def settings(tmp_path: Path):
    configured = configure(
        config_path=tmp_path / "config",
        template_paths=[tmp_path / "templates"],
        environment="test",
    )
    yield configured
    reset_settings()


@pytest.fixture(autouse=True)
def queue(monkeypatch) -> MemoryQueue:
    fresh = MemoryQueue()
    monkeypatch.setattr(SubmissionJob, "queue_adapter", fresh)
    return fresh


@pytest.fixture
def server(monkeypatch) -> StubServer:
    stub = StubServer()
    monkeypatch.setattr(Client, "transport_factory", stub.transport)
    return stub


@pytest.fixture
def declare_template(tmp_path: Path) -> Callable[[str, str], Path]:
    def write(relative: str, content: str) -> Path:
        path = tmp_path / "templates" / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return write


@pytest.fixture
def declare_config(tmp_path: Path) -> Callable[[str, str], Path]:
    def write(relative: str, content: str) -> Path:
        path = tmp_path / "config" / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return write
