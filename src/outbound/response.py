"""Responses handed to callbacks and returned from ``submit()``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping

import httpx

from .exceptions import FrozenResponseError


@dataclass(frozen=True)
class RawResponse:
    """The (status, headers, body) triplet passed between middleware."""

    status: int
    headers: httpx.Headers
    body: Any

    def __iter__(self) -> Iterator[Any]:
        return iter((self.status, self.headers, self.body))

    def replace(self, **changes: Any) -> RawResponse:
        values = {"status": self.status, "headers": self.headers, "body": self.body}
        values.update(changes)
        return RawResponse(**values)


class FrozenHeaders(Mapping[str, str]):
    """Read-only, case-insensitive view of response headers."""

    def __init__(self, headers: httpx.Headers) -> None:
        self._headers = httpx.Headers(headers)

    def __getitem__(self, key: str) -> str:
        return self._headers[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"FrozenHeaders({dict(self._headers.items())!r})"


class Response:
    """Mutable while callbacks run, frozen once returned to the caller."""

    def __init__(self, status: int = 200, headers: Mapping[str, str] | None = None, body: Any = None) -> None:
        self._frozen = False
        self.status = status
        self.headers = headers if headers is not None else {}
        self.body = body

    @classmethod
    def from_raw(cls, raw: RawResponse) -> Response:
        return cls(raw.status, raw.headers, raw.body)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise FrozenResponseError(f"cannot set {name!r} on a submitted response")
        if name == "headers" and not isinstance(value, httpx.Headers):
            value = httpx.Headers(dict(value))
        object.__setattr__(self, name, value)

    def __getitem__(self, header: str) -> str | None:
        return self.headers.get(header)

    def __setitem__(self, header: str, value: str) -> None:
        if self._frozen:
            raise FrozenResponseError(f"cannot set header {header!r} on a submitted response")
        self.headers[header] = value

    def __iter__(self) -> Iterator[Any]:
        return iter(self.to_tuple())

    def to_tuple(self) -> tuple[int, Any, Any]:
        return (self.status, self.headers, self.body)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("Content-Type")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> Response:
        if not self._frozen:
            object.__setattr__(self, "headers", FrozenHeaders(self.headers))
            object.__setattr__(self, "_frozen", True)
        return self

    def __repr__(self) -> str:
        return f"<Response {self.status}>"
