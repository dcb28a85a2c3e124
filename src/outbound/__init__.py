"""Declarative outbound HTTP clients with middleware, callbacks and queued submission."""

from .callbacks import AmbientCallback, BodyCallback, Callback, CallbackChain, TripletCallback, after_submit, current_response
from .client import Client, action, lookup_client
from .codecs import CodecRegistry, default_codecs
from .config import Configuration, configure, get_settings, reset_settings
from .exceptions import (
    AfterSubmitError,
    ConfigurationError,
    FrozenResponseError,
    OutboundError,
    ParseError,
    StatusMismatchError,
)
from .instrumentation import Notifier, attach_log_subscriber, notifications
from .jobs import JobInvocation, JobStatus, MemoryQueue, SubmissionJob, Worker, perform_enqueued_jobs
from .middleware import ContentLength, MiddlewareStack, RequestLogger, ResponseParser, default_middleware
from .request import Request
from .response import Response
from .status import StatusFilter
from .submittable import SubmittableRequest
from .templates import JinjaTemplates
from .transport import HttpxTransport

attach_log_subscriber()

__all__ = [
    "AfterSubmitError",
    "AmbientCallback",
    "BodyCallback",
    "Callback",
    "CallbackChain",
    "Client",
    "CodecRegistry",
    "Configuration",
    "ConfigurationError",
    "ContentLength",
    "FrozenResponseError",
    "HttpxTransport",
    "JinjaTemplates",
    "JobInvocation",
    "JobStatus",
    "MemoryQueue",
    "MiddlewareStack",
    "Notifier",
    "OutboundError",
    "ParseError",
    "Request",
    "RequestLogger",
    "Response",
    "ResponseParser",
    "StatusFilter",
    "StatusMismatchError",
    "SubmissionJob",
    "SubmittableRequest",
    "TripletCallback",
    "Worker",
    "action",
    "after_submit",
    "configure",
    "current_response",
    "default_codecs",
    "default_middleware",
    "get_settings",
    "lookup_client",
    "notifications",
    "perform_enqueued_jobs",
    "reset_settings",
]
