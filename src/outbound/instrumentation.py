"""Named instrumentation events and the log subscriber built on them."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

logger = logging.getLogger(__name__)

SUBMIT = "submit"
HTTP_REQUEST = "http_request"
PARSE = "parse"


@dataclass
class Event:
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def duration(self) -> float:
        """Elapsed time in milliseconds."""
        return (self.finished_at - self.started_at) * 1000.0


Subscriber = Callable[[Event], Any]


class Notifier:
    """Fire-and-forget publisher for ``submit``, ``http_request`` and ``parse``.

    Subscribers that raise are logged and skipped so an observer can never
    change the outcome of a submission.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, name: str, subscriber: Subscriber) -> Subscriber:
        self._subscribers.setdefault(name, []).append(subscriber)
        return subscriber

    def unsubscribe(self, name: str, subscriber: Subscriber) -> None:
        subscribers = self._subscribers.get(name, [])
        if subscriber in subscribers:
            subscribers.remove(subscriber)

    @contextmanager
    def subscribed(self, name: str, subscriber: Subscriber) -> Iterator[Subscriber]:
        self.subscribe(name, subscriber)
        try:
            yield subscriber
        finally:
            self.unsubscribe(name, subscriber)

    def __deepcopy__(self, memo: dict) -> Notifier:
        return self

    def clear(self) -> None:
        self._subscribers.clear()

    def publish(self, event: Event) -> None:
        for subscriber in list(self._subscribers.get(event.name, ())):
            try:
                subscriber(event)
            except Exception:
                logger.exception("instrumentation subscriber failed for %s", event.name)

    @contextmanager
    def instrument(self, name: str, **payload: Any) -> Iterator[Event]:
        """Time the enclosed block and publish it, even when the block raises."""
        event = Event(name, payload, started_at=time.perf_counter())
        try:
            yield event
        except BaseException as exc:
            event.payload["exception"] = exc
            raise
        finally:
            event.finished_at = time.perf_counter()
            self.publish(event)


notifications = Notifier()


def log_submission(event: Event) -> None:
    client = event.payload.get("client")
    request = event.payload.get("request")
    action = f"{type(client).__name__}#{event.payload.get('action_name')}"
    http = f"{request.method} {request.url}" if request is not None else ""
    logger.info("%s - %s (Duration %.2fms)", action, http, event.duration)


def attach_log_subscriber(notifier: Notifier | None = None) -> None:
    (notifier or notifications).subscribe(SUBMIT, log_submission)
