from __future__ import annotations

import logging

import httpx
import pytest

from outbound.exceptions import ParseError
from outbound.instrumentation import Notifier
from outbound.middleware import (
    ContentLength,
    MiddlewareStack,
    RequestLogger,
    ResponseParser,
    compose,
    default_middleware,
)
from outbound.request import Request
from outbound.response import RawResponse


class StaticTransport:
    def __init__(self, response: RawResponse) -> None:
        self.response = response
        self.seen: list[Request] = []

    def execute(self, request: Request) -> RawResponse:
        self.seen.append(request)
        return self.response


def make_request(**headers: str) -> Request:
    return Request("GET", httpx.URL("https://example.com/articles"), httpx.Headers(headers))


def test_compose_runs_middleware_outermost_first() -> None:
    calls: list[str] = []

    def tracer(name: str):
        def middleware(request, call_next):
            calls.append(f"{name}:in")
            response = call_next(request)
            calls.append(f"{name}:out")
            return response

        return middleware

    def terminal(request):
        calls.append("transport")
        return RawResponse(200, httpx.Headers(), b"")

    compose([tracer("a"), tracer("b")], terminal)(make_request())

    assert calls == ["a:in", "b:in", "transport", "b:out", "a:out"]


def test_parser_decodes_by_response_content_type() -> None:
    transport = StaticTransport(RawResponse(200, httpx.Headers({"Content-Type": "application/json"}), b'{"ok": true}'))

    response = compose([ResponseParser()], transport.execute)(make_request())

    assert response.body == {"ok": True}


def test_parser_falls_back_to_request_accept_header() -> None:
    transport = StaticTransport(RawResponse(200, httpx.Headers(), b'{"ok": true}'))

    response = compose([ResponseParser()], transport.execute)(make_request(Accept="application/json"))

    assert response.body == {"ok": True}


def test_parser_surfaces_parse_errors() -> None:
    transport = StaticTransport(RawResponse(200, httpx.Headers({"Content-Type": "application/json"}), b"<html>"))

    with pytest.raises(ParseError) as info:
        compose([ResponseParser()], transport.execute)(make_request())

    assert info.value.body == b"<html>"


def test_parser_publishes_parse_event() -> None:
    notifier = Notifier()
    events = []
    notifier.subscribe("parse", events.append)
    transport = StaticTransport(RawResponse(200, httpx.Headers({"Content-Type": "application/json"}), b"{}"))

    compose([ResponseParser(notifier=notifier)], transport.execute)(make_request())

    assert events[0].payload == {"content_type": "application/json", "body": b"{}"}
    assert events[0].duration >= 0


def test_content_length_is_added_to_raw_bodies() -> None:
    transport = StaticTransport(RawResponse(200, httpx.Headers(), b"success"))

    response = compose([ContentLength()], transport.execute)(make_request())

    assert response.headers["Content-Length"] == "7"


def test_content_length_is_added_to_outbound_bodies() -> None:
    transport = StaticTransport(RawResponse(204, httpx.Headers(), b""))
    request = Request("POST", httpx.URL("https://example.com/articles"), httpx.Headers(), b'{"title": "x"}')

    compose([ContentLength()], transport.execute)(request)
    compose([ContentLength()], transport.execute)(make_request())

    assert transport.seen[0].headers["Content-Length"] == "14"
    assert transport.seen[0].body == request.body
    assert "Content-Length" not in request.headers
    assert "Content-Length" not in transport.seen[1].headers


def test_request_logger_observes_without_altering(caplog) -> None:
    raw = RawResponse(201, httpx.Headers({"X-Id": "1"}), b"body")
    transport = StaticTransport(raw)

    with caplog.at_level(logging.DEBUG, logger="outbound.middleware"):
        response = compose([RequestLogger()], transport.execute)(make_request(Authorization="Bearer secret"))

    assert response is raw
    assert "secret" not in caplog.text
    assert "[REDACTED]" in caplog.text
    assert "completed 201" in caplog.text


def test_stack_copies_are_independent() -> None:
    parent = default_middleware()
    child = parent.copy()

    child.delete(RequestLogger)

    assert list(parent) == [ResponseParser, ContentLength, RequestLogger]
    assert list(child) == [ResponseParser, ContentLength]


def test_stack_builds_fresh_instances_per_pipeline() -> None:
    built: list[object] = []

    class Recording:
        def __init__(self) -> None:
            built.append(self)

        def __call__(self, request, call_next):
            return call_next(request)

    stack = MiddlewareStack()
    stack.use(Recording)
    transport = StaticTransport(RawResponse(200, httpx.Headers(), b""))

    stack.build(transport)(make_request())
    stack.build(transport)(make_request())

    assert len(built) == 2
    assert built[0] is not built[1]


def test_insert_before_and_after() -> None:
    stack = MiddlewareStack()
    stack.use(ResponseParser)
    stack.insert_before(ResponseParser, ContentLength)
    stack.insert_after(ResponseParser, RequestLogger)

    assert list(stack) == [ContentLength, ResponseParser, RequestLogger]
