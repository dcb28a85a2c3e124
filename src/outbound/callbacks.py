"""After-submit callbacks.

Each callback is declared with an explicit call shape:

* :class:`AmbientCallback` takes no arguments and works on the ambient
  response (``client.response`` or :func:`current_response`).
* :class:`BodyCallback` receives the body and returns the replacement body.
* :class:`TripletCallback` receives ``(status, headers, body)`` and returns
  all three.

A target may be a callable or the name of a method on the client.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from .exceptions import AfterSubmitError, ConfigurationError
from .response import Response
from .status import StatusFilter, StatusSpec

_current_response: contextvars.ContextVar[Response | None] = contextvars.ContextVar("outbound_response", default=None)


def current_response() -> Response:
    """Return the response being processed by the running callback chain."""
    response = _current_response.get()
    if response is None:
        raise RuntimeError("current_response() called outside of an after-submit callback")
    return response


class Callback:
    """Base for the three callback shapes."""

    def __init__(self, target: Callable[..., Any] | str) -> None:
        if not (callable(target) or isinstance(target, str)):
            raise ConfigurationError(f"callback target must be callable or a method name, got {target!r}")
        self.target = target

    def resolve(self, context: Any) -> Callable[..., Any]:
        if isinstance(self.target, str):
            return getattr(context, self.target)
        return self.target

    def invoke(self, context: Any, response: Response) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.target!r})"


class AmbientCallback(Callback):
    def invoke(self, context: Any, response: Response) -> None:
        self.resolve(context)()


class BodyCallback(Callback):
    def invoke(self, context: Any, response: Response) -> None:
        body = self.resolve(context)(response.body)
        if body is None:
            raise AfterSubmitError(
                f"single-argument callback must return a value: {self!r} returned None",
                status_code=response.status,
            )
        response.body = body


class TripletCallback(Callback):
    def invoke(self, context: Any, response: Response) -> None:
        result = self.resolve(context)(response.status, response.headers, response.body)
        if not isinstance(result, (tuple, list)) or len(result) != 3:
            count = len(result) if isinstance(result, (tuple, list)) else int(result is not None)
            raise AfterSubmitError(
                f"triplet callback must return exactly three values: {self!r} returned {count}: {result!r}",
                status_code=response.status,
            )
        response.status, response.headers, response.body = result


def _action_names(names: str | Iterable[str] | None) -> frozenset[str] | None:
    if names is None:
        return None
    if isinstance(names, str):
        return frozenset({names})
    return frozenset(names)


@dataclass(frozen=True)
class AfterSubmit:
    """A callback plus the status and action-name filters that gate it."""

    callback: Callback
    status_filter: StatusFilter
    only: frozenset[str] | None = None
    except_: frozenset[str] | None = None

    @classmethod
    def declare(
        cls,
        callback: Callback,
        *,
        only_status: StatusSpec = None,
        except_status: StatusSpec = None,
        only: str | Iterable[str] | None = None,
        except_: str | Iterable[str] | None = None,
    ) -> AfterSubmit:
        if not isinstance(callback, Callback):
            raise ConfigurationError(
                "after-submit callbacks must be wrapped in AmbientCallback, BodyCallback or TripletCallback"
            )
        if only is not None and except_ is not None:
            raise ConfigurationError("pass either only: or except_:, not both")
        return cls(
            callback,
            StatusFilter.from_options(only_status, except_status),
            _action_names(only),
            _action_names(except_),
        )

    def applies(self, status: int, action_name: str | None) -> bool:
        if not self.status_filter.matches(status):
            return False
        if self.only is not None:
            return action_name in self.only
        if self.except_ is not None:
            return action_name not in self.except_
        return True


class CallbackChain:
    """Ordered after-submit callbacks, run in declaration order."""

    def __init__(self, entries: Iterable[AfterSubmit] = ()) -> None:
        self._entries = list(entries)

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, callback: Callback, **filters: Any) -> AfterSubmit:
        entry = AfterSubmit.declare(callback, **filters)
        self._entries.append(entry)
        return entry

    def copy(self) -> CallbackChain:
        return CallbackChain(self._entries)

    def run(
        self,
        response: Response,
        context: Any,
        action_name: str | None = None,
        *,
        request_callback: Callback | None = None,
    ) -> Response:
        token = _current_response.set(response)
        previous = getattr(context, "response", None)
        try:
            if context is not None:
                context.response = response
            for entry in self._entries:
                if entry.applies(response.status, action_name):
                    response = self._invoke(entry.callback, context, response)
            if request_callback is not None:
                response = self._invoke(request_callback, context, response)
        finally:
            _current_response.reset(token)
            if context is not None:
                context.response = previous
        return response

    @staticmethod
    def _invoke(callback: Callback, context: Any, response: Response) -> Response:
        callback.invoke(context, response)
        # An ambient callback may swap in a whole new response.
        replaced = getattr(context, "response", response)
        if isinstance(replaced, Response) and replaced is not response:
            _current_response.set(replaced)
            return replaced
        return response


def after_submit(
    kind: type[Callback] = AmbientCallback,
    **filters: Any,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a client method as an after-submit callback.

    ``Client`` collects marked methods in definition order when the class is
    created. The method is looked up by name at submit time, so subclasses may
    override it.
    """
    # Fail at declaration time, not on first submit.
    AfterSubmit.declare(kind("_"), **filters)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        declarations = getattr(func, "__after_submit__", [])
        func.__after_submit__ = [*declarations, (kind, filters)]
        return func

    return decorator
