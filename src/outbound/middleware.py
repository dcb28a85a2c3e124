"""Request/response middleware composed around a transport.

A middleware is any callable ``(request, call_next) -> RawResponse``. Clients
hold a :class:`MiddlewareStack` describing which middleware to use; the stack
builds fresh instances for every submission so no state is shared between
requests.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Protocol, Sequence

import httpx

from .codecs import CodecRegistry, default_codecs
from .instrumentation import PARSE, Notifier, notifications
from .request import Request
from .response import RawResponse
from .security import sanitize_headers
from .transport import Transport

logger = logging.getLogger(__name__)

Pipeline = Callable[[Request], RawResponse]


class Middleware(Protocol):
    def __call__(self, request: Request, call_next: Pipeline) -> RawResponse: ...


def compose(middlewares: Sequence[Middleware], terminal: Pipeline) -> Pipeline:
    pipeline = terminal
    for middleware in reversed(middlewares):
        next_pipeline = pipeline

        def _wrapped(request: Request, *, _mw: Middleware = middleware, _n: Pipeline = next_pipeline) -> RawResponse:
            return _mw(request, _n)

        pipeline = _wrapped
    return pipeline


class ResponseParser:
    """Decode the response body with the codec registered for its content type.

    The content type comes from the response, falling back to the request's
    ``Accept`` header.
    """

    def __init__(self, codecs: CodecRegistry | None = None, *, notifier: Notifier | None = None) -> None:
        self.codecs = codecs or default_codecs()
        self.notifier = notifier or notifications

    def __call__(self, request: Request, call_next: Pipeline) -> RawResponse:
        response = call_next(request)
        content_type = response.headers.get("Content-Type", request.headers.get("Accept", ""))
        if not response.body:
            return response
        with self.notifier.instrument(PARSE, content_type=content_type, body=response.body):
            body = self.codecs.decode(content_type, response.body)
        return response.replace(body=body)


class ContentLength:
    """Set ``Content-Length`` on outbound bodies and on raw response bodies."""

    def __call__(self, request: Request, call_next: Pipeline) -> RawResponse:
        if request.body and "Content-Length" not in request.headers:
            outbound = httpx.Headers(request.headers)
            outbound["Content-Length"] = str(len(request.body))
            request = replace(request, headers=outbound)
        response = call_next(request)
        body = response.body
        if isinstance(body, (bytes, bytearray, str)) and "Content-Length" not in response.headers:
            if response.status >= 200 and response.status not in (204, 304):
                headers = httpx.Headers(response.headers)
                length = len(body.encode("utf-8")) if isinstance(body, str) else len(body)
                headers["Content-Length"] = str(length)
                return response.replace(headers=headers)
        return response


class RequestLogger:
    """Log each exchange without altering it."""

    def __init__(self, tag: Callable[[Request], str] | None = None, *, level: int = logging.DEBUG) -> None:
        self.tag = tag or default_tag
        self.level = level

    def __call__(self, request: Request, call_next: Pipeline) -> RawResponse:
        tag = self.tag(request)
        logger.log(self.level, "[%s] started headers=%s", tag, sanitize_headers(request.headers))
        response = call_next(request)
        logger.log(self.level, "[%s] completed %s", tag, response.status)
        return response


def default_tag(request: Request) -> str:
    return f"outbound - {request.method} - {request.url}"


@dataclass
class _Entry:
    factory: Callable[..., Middleware]
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    def build(self) -> Middleware:
        return self.factory(*self.args, **self.kwargs)


class MiddlewareStack:
    """Ordered middleware declarations, outermost first."""

    def __init__(self) -> None:
        self._entries: list[_Entry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return (entry.factory for entry in self._entries)

    def _index(self, factory: Callable[..., Middleware]) -> int:
        for index, entry in enumerate(self._entries):
            if entry.factory is factory:
                return index
        raise ValueError(f"{factory!r} is not in the middleware stack")

    def use(self, factory: Callable[..., Middleware], *args: Any, **kwargs: Any) -> None:
        self._entries.append(_Entry(factory, args, kwargs))

    def insert_before(self, target: Callable[..., Middleware], factory: Callable[..., Middleware], *args: Any, **kwargs: Any) -> None:
        self._entries.insert(self._index(target), _Entry(factory, args, kwargs))

    def insert_after(self, target: Callable[..., Middleware], factory: Callable[..., Middleware], *args: Any, **kwargs: Any) -> None:
        self._entries.insert(self._index(target) + 1, _Entry(factory, args, kwargs))

    def delete(self, factory: Callable[..., Middleware]) -> None:
        del self._entries[self._index(factory)]

    def copy(self) -> MiddlewareStack:
        derived = MiddlewareStack()
        derived._entries = [_Entry(entry.factory, copy.deepcopy(entry.args), copy.deepcopy(entry.kwargs)) for entry in self._entries]
        return derived

    def build(self, transport: Transport) -> Pipeline:
        return compose([entry.build() for entry in self._entries], transport.execute)


def default_middleware() -> MiddlewareStack:
    stack = MiddlewareStack()
    stack.use(ResponseParser)
    stack.use(ContentLength)
    stack.use(RequestLogger)
    return stack
