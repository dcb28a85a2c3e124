"""Declarative API clients.

A client subclasses :class:`Client`, declares ``defaults`` and marks request
building methods with :func:`action`::

    class ArticlesClient(Client):
        defaults = {"url": "https://example.com", "headers": {"Accept": "application/json"}}

        @action
        def create(self, article):
            return self.post(path="/articles", locals={"article": article})

    ArticlesClient.create(article).submit()

Defaults, middleware, callbacks and the action registry are derived from the
parent when a subclass is created, so declarations on one client never leak
into its parent or siblings.
"""

from __future__ import annotations

import copy
import functools
import importlib
import logging
import mimetypes
import re
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Any, Callable, ClassVar, Mapping

import httpx

from .callbacks import Callback, CallbackChain
from .config import Configuration, get_settings, load_client_configuration
from .exceptions import ConfigurationError
from .instrumentation import Notifier, notifications
from .jobs import JobInvocation, SubmissionJob
from .middleware import MiddlewareStack, default_middleware
from .request import Request
from .submittable import SubmittableRequest
from .templates import JinjaTemplates, TemplateRenderer
from .transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

HTTP_METHODS = ("CONNECT", "DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT", "TRACE")

_clients: dict[str, type[Client]] = {}


def _snake_case(name: str) -> str:
    name = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name).lower()


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``overrides`` into a copy of ``base``; nested mappings merge key by key."""
    merged = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def client_name(client_class: type) -> str:
    return f"{client_class.__module__}.{client_class.__qualname__}"


def lookup_client(name: str) -> type[Client]:
    """Resolve a client class from the name recorded in a job invocation."""
    if name in _clients:
        return _clients[name]
    module_name, _, attribute = name.rpartition(".")
    try:
        target: Any = importlib.import_module(module_name)
        for part in attribute.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError, ValueError):
        raise ConfigurationError(f"unknown client {name!r}") from None
    if not (isinstance(target, type) and issubclass(target, Client)):
        raise ConfigurationError(f"{name!r} is not a Client")
    return target


def _normalize_headers(headers: Mapping[str, Any] | None) -> dict[str, str]:
    if not headers:
        return {}
    return {str(key): str(value) for key, value in headers.items() if value is not None}


@lru_cache(maxsize=16)
def _default_templates(search_paths: tuple[str, ...]) -> JinjaTemplates:
    return JinjaTemplates(search_paths)


class action:
    """Register a method as a named action on its client.

    Accessed on the class, the action instantiates the client, runs the
    method and returns its :class:`SubmittableRequest`.
    """

    def __init__(self, func: Callable[..., SubmittableRequest]) -> None:
        self.func = func
        self.name = func.__name__
        functools.update_wrapper(self, func)

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type) -> Callable[..., SubmittableRequest]:
        if instance is None:
            bound = functools.partial(owner.process, self.name)
        else:
            bound = functools.partial(instance.run_action, self.name)
        return functools.update_wrapper(bound, self.func)


class Client:
    defaults: ClassVar[dict[str, Any]] = {}
    middleware: ClassVar[MiddlewareStack] = default_middleware()
    callbacks: ClassVar[CallbackChain] = CallbackChain()
    submission_job: ClassVar[type[SubmissionJob]] = SubmissionJob
    configuration: ClassVar[Configuration] = Configuration()
    template_prefix: ClassVar[str] = ""
    config_name: ClassVar[str | None] = None
    template_renderer: ClassVar[TemplateRenderer | None] = None
    transport_factory: ClassVar[Callable[[], Transport] | None] = None
    notifier: ClassVar[Notifier] = notifications
    _actions: ClassVar[dict[str, action]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        parent = super(cls, cls)
        namespace = cls.__dict__

        if "template_prefix" not in namespace:
            cls.template_prefix = _snake_case(cls.__name__)
        if "config_name" not in namespace or cls.config_name is None:
            cls.config_name = re.sub(r"_client$", "", _snake_case(cls.__name__))
        cls.configuration = load_client_configuration(cls.config_name)

        declared = namespace.get("defaults", {})
        cls.defaults = deep_merge(deep_merge(parent.defaults, declared), cls.configuration)

        stack = namespace["middleware"] if "middleware" in namespace else parent.middleware
        cls.middleware = stack.copy()

        cls.callbacks = parent.callbacks.copy()
        for name, value in namespace.items():
            for kind, filters in getattr(value, "__after_submit__", ()):
                cls.callbacks.register(kind(name), **filters)

        cls._actions = {
            name: value for name, value in parent._actions.items()
            if name not in namespace or isinstance(namespace[name], action)
        }
        cls._actions.update({name: value for name, value in namespace.items() if isinstance(value, action)})

        _clients[client_name(cls)] = cls

    # -- declaration helpers -------------------------------------------------

    @classmethod
    def default(cls, **options: Any) -> None:
        cls.defaults = deep_merge(cls.defaults, options)

    @classmethod
    def register_after_submit(cls, callback: Callback, **filters: Any) -> None:
        if cls is Client:
            raise ConfigurationError("declare callbacks on a Client subclass")
        cls.callbacks.register(callback, **filters)

    @classmethod
    def action_methods(cls) -> list[str]:
        return sorted(cls._actions)

    @classmethod
    def process(cls, action_name: str, *args: Any, **kwargs: Any) -> SubmittableRequest:
        return cls().run_action(action_name, *args, **kwargs)

    # -- instances -------------------------------------------------------------

    def __init__(self) -> None:
        self.action_name: str | None = None
        self.action_arguments: tuple[Any, ...] = ()
        self.action_keyword_arguments: dict[str, Any] = {}
        self.response = None

    def run_action(self, action_name: str, *args: Any, **kwargs: Any) -> SubmittableRequest:
        declared = type(self)._actions.get(action_name)
        if declared is None:
            raise ConfigurationError(f"{type(self).__name__} has no action {action_name!r}")
        self.action_name = action_name
        self.action_arguments = args
        self.action_keyword_arguments = kwargs
        request = declared.func(self, *args, **kwargs)
        if not isinstance(request, SubmittableRequest):
            raise ConfigurationError(
                f"{type(self).__name__}.{action_name} must return a request built by an HTTP verb helper"
            )
        return request

    def build_transport(self) -> Transport:
        factory = type(self).transport_factory
        if factory is not None:
            return factory()
        return HttpxTransport(notifier=self.notifier)

    def templates(self) -> TemplateRenderer:
        renderer = type(self).template_renderer
        if renderer is not None:
            return renderer
        return _default_templates(tuple(str(path) for path in get_settings().template_paths))

    def enqueue_job(self, **options: Any) -> JobInvocation:
        return self.submission_job.enqueue(
            client_name(type(self)),
            self.action_name,
            self.action_arguments,
            self.action_keyword_arguments,
            **options,
        )

    # -- request building --------------------------------------------------------

    def _resolve_url(self, path: str | None, url: str | None, query: Mapping[str, Any] | None) -> httpx.URL:
        if path and url:
            raise ConfigurationError("either pass only url=, or only path=")
        base_url = self.defaults.get("url")
        if path and not base_url:
            raise ConfigurationError("path= argument without a default url: missing default base URL")

        raw = url or base_url
        if raw is None:
            raise ConfigurationError("pass url= or declare a default url")
        target = httpx.URL(str(raw))
        pairs = list(target.params.multi_items())
        if path:
            # The base URL's query stays a query; only its path is extended.
            path_part, _, path_query = str(path).partition("?")
            target = target.copy_with(path=target.path.rstrip("/") + "/" + path_part.lstrip("/"))
            pairs.extend(httpx.QueryParams(path_query).multi_items())

        merged: dict[str, Any] = {}
        for key, value in pairs:
            merged.setdefault(key, []).append(value)
        merged = {key: values[0] if len(values) == 1 else values for key, values in merged.items()}
        merged.update(query or {})

        params = []
        for key in sorted(merged):
            values = merged[key]
            for value in values if isinstance(values, (list, tuple)) else [values]:
                if not isinstance(value, (str, int, float, bool)) and value is not None:
                    value = str(value)
                params.append((str(key), value))
        return target.copy_with(params=params)

    def build_request(
        self,
        method: str,
        *,
        path: str | None = None,
        url: str | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        locals: Mapping[str, Any] | None = None,
        layout: str | None = None,
        after_submit: Callback | None = None,
    ) -> SubmittableRequest:
        method = method.upper()
        if method not in HTTP_METHODS:
            raise ConfigurationError(f"unsupported HTTP method {method!r}")

        target = self._resolve_url(path, url, query)
        default_headers = _normalize_headers(self.defaults.get("headers"))
        explicit_headers = _normalize_headers(headers)

        renderer = self.templates()
        if self.action_name and renderer.exists(self.template_prefix, self.action_name):
            rendered = renderer.render(
                self.template_prefix,
                self.action_name,
                {**(locals or {}), "client": self},
                layout=layout,
            )
            body = rendered.content.encode("utf-8")
            content_type = rendered.content_type
        else:
            body = b""
            declared = httpx.Headers(default_headers)
            declared.update(explicit_headers)
            content_type = declared.get("Content-Type")

        accept, _ = mimetypes.guess_type(PurePosixPath(target.path).name) if PurePosixPath(target.path).suffix else (None, None)
        computed = {"Accept": accept or content_type, "Content-Type": content_type}

        resolved = httpx.Headers()
        for layer in (computed, default_headers, explicit_headers):
            for key, value in layer.items():
                if value is not None:
                    resolved[key] = value

        request = Request(method, target, resolved, body)
        logger.debug("built %s for %s#%s", request, type(self).__name__, self.action_name)
        return SubmittableRequest(request, client=self, after_submit=after_submit)

    def connect(self, **options: Any) -> SubmittableRequest:
        return self.build_request("CONNECT", **options)

    def delete(self, **options: Any) -> SubmittableRequest:
        return self.build_request("DELETE", **options)

    def get(self, **options: Any) -> SubmittableRequest:
        return self.build_request("GET", **options)

    def head(self, **options: Any) -> SubmittableRequest:
        return self.build_request("HEAD", **options)

    def options(self, **options: Any) -> SubmittableRequest:
        return self.build_request("OPTIONS", **options)

    def patch(self, **options: Any) -> SubmittableRequest:
        return self.build_request("PATCH", **options)

    def post(self, **options: Any) -> SubmittableRequest:
        return self.build_request("POST", **options)

    def put(self, **options: Any) -> SubmittableRequest:
        return self.build_request("PUT", **options)

    def trace(self, **options: Any) -> SubmittableRequest:
        return self.build_request("TRACE", **options)
