"""Exceptions raised while declaring, building and submitting requests."""

from __future__ import annotations

from typing import Any, Mapping


class OutboundError(Exception):
    """Base exception for all outbound failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: object = None,
        headers: Mapping[str, str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers) if headers is not None else {}
        self.cause = cause

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.status_code is None:
            return str(self.args[0])
        return f"{self.status_code}: {self.args[0]}"


class ConfigurationError(OutboundError, ValueError):
    """Raised when a client, callback or job is declared with conflicting options."""


class ParseError(OutboundError):
    """Raised when a response body cannot be decoded for its content type."""

    def __init__(self, cause: Exception, body: Any, content_type: str) -> None:
        super().__init__(str(cause), body=body, cause=cause)
        self.content_type = content_type


class AfterSubmitError(OutboundError):
    """Raised when an after-submit callback breaks its return contract."""


class StatusMismatchError(OutboundError):
    """Raised inside a submission job when a response status is declared retryable."""

    def __init__(self, response: Any) -> None:
        super().__init__(
            f"response status {response.status} matched a retry_on status filter",
            status_code=response.status,
            body=response.body,
            headers=response.headers,
        )
        self.response = response


class FrozenResponseError(OutboundError, AttributeError):
    """Raised when a response is modified after callbacks have finished."""
