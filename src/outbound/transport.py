"""Thin adapter executing a built request over httpx."""

from __future__ import annotations

from typing import Protocol

import httpx

from .instrumentation import HTTP_REQUEST, Notifier, notifications
from .request import Request
from .response import RawResponse


class Transport(Protocol):
    def execute(self, request: Request) -> RawResponse: ...


class HttpxTransport:
    """Send one request through an ``httpx.Client``.

    Timeouts and connection failures surface as the httpx exceptions that
    raised them.
    """

    default_timeout = 30.0

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float | None = None,
        follow_redirects: bool = False,
        notifier: Notifier | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout if timeout is not None else self.default_timeout,
            follow_redirects=follow_redirects,
            trust_env=False,
        )
        self.notifier = notifier or notifications

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def execute(self, request: Request) -> RawResponse:
        with self.notifier.instrument(HTTP_REQUEST, method=request.method, uri=request.url) as event:
            response = self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body or None,
            )
            event.payload["http_request"] = response.request
            event.payload["status"] = response.status_code
        return RawResponse(response.status_code, httpx.Headers(response.headers), response.content)
