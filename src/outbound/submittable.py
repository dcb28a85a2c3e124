"""Requests that know how to submit themselves."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from .callbacks import Callback
from .exceptions import ConfigurationError
from .instrumentation import SUBMIT
from .request import Request
from .response import Response

if TYPE_CHECKING:
    from .client import Client
    from .jobs import JobInvocation

logger = logging.getLogger(__name__)


class RequestState(Enum):
    BUILT = "built"
    SUBMITTED = "submitted"
    ENQUEUED = "enqueued"


class SubmittableRequest:
    """A built :class:`Request` bound to the client that produced it.

    ``submit()`` runs the request through a freshly built middleware pipeline
    and the client's callback chain. ``submit_later()`` hands the originating
    action and its arguments to the client's submission job instead.
    """

    def __init__(self, request: Request, *, client: Client, after_submit: Callback | None = None) -> None:
        if after_submit is not None and not isinstance(after_submit, Callback):
            raise ConfigurationError(
                "after_submit= must be an AmbientCallback, BodyCallback or TripletCallback"
            )
        self.request = request
        self.client = client
        self.after_submit = after_submit
        self.state = RequestState.BUILT
        self.response: Response | None = None

    def __getattr__(self, name: str) -> Any:
        if name == "request":
            raise AttributeError(name)
        return getattr(self.request, name)

    def __repr__(self) -> str:
        return f"<SubmittableRequest {self.request.method} {self.request.url} ({self.state.value})>"

    def submit(self) -> Response:
        client = self.client
        with client.notifier.instrument(
            SUBMIT,
            client=client,
            action_name=client.action_name,
            action_arguments=list(client.action_arguments),
            request=self.request,
        ) as event:
            transport = client.build_transport()
            try:
                pipeline = client.middleware.build(transport)
                raw = pipeline(self.request)
            finally:
                close = getattr(transport, "close", None)
                if close is not None:
                    close()
            response = client.callbacks.run(
                Response.from_raw(raw),
                client,
                client.action_name,
                request_callback=self.after_submit,
            )
            event.payload["response"] = response
        self.state = RequestState.SUBMITTED
        self.response = response.freeze()
        return self.response

    submit_now = submit

    def submit_later(self, **options: Any) -> JobInvocation:
        """Enqueue the originating action; ``options`` go to the queue untouched."""
        invocation = self.client.enqueue_job(**options)
        self.state = RequestState.ENQUEUED
        logger.debug("enqueued %s as job %s", self, invocation.job_id)
        return invocation
