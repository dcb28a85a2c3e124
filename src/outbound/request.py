"""The concrete request produced by an action."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass(frozen=True)
class Request:
    method: str
    url: httpx.URL
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""

    @property
    def content_type(self) -> str | None:
        return self.headers.get("Content-Type")

    @property
    def original_url(self) -> str:
        return str(self.url)

    @property
    def path(self) -> str:
        return self.url.path

    @property
    def query(self) -> dict[str, Any]:
        return dict(self.url.params)

    def text(self) -> str:
        return self.body.decode("utf-8")

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.url}>"
