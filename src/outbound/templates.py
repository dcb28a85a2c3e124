"""Body templates rendered through jinja2.

Templates live under ``<prefix>/<action>.<format>.j2`` where ``prefix`` is the
client's ``template_prefix``. The format extension decides the request's
content type.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape

TEMPLATE_SUFFIXES = (".j2", ".jinja", ".jinja2")
DEFAULT_FORMATS = ("json", "xml", "txt", "html", "form", "raw", "")

FORMAT_CONTENT_TYPES = {
    "json": "application/json",
    "xml": "application/xml",
    "txt": "text/plain",
    "text": "text/plain",
    "html": "text/html",
    "form": "application/x-www-form-urlencoded",
    "raw": None,
    "": "application/json",
}


def content_type_for_format(fmt: str) -> str | None:
    if fmt in FORMAT_CONTENT_TYPES:
        return FORMAT_CONTENT_TYPES[fmt]
    guessed, _ = mimetypes.guess_type(f"body.{fmt}")
    return guessed


@dataclass(frozen=True)
class Rendered:
    content: str
    content_type: str | None


class TemplateRenderer(Protocol):
    def exists(self, prefix: str, action_name: str) -> bool: ...

    def render(
        self,
        prefix: str,
        action_name: str,
        locals: Mapping[str, Any],
        *,
        layout: str | None = None,
    ) -> Rendered: ...


class JinjaTemplates:
    """Locate and render action body templates from one or more directories."""

    def __init__(self, search_paths: Iterable[str | Path] = ("templates",), *, formats: Sequence[str] = DEFAULT_FORMATS) -> None:
        self.search_paths = [str(path) for path in search_paths]
        self.formats = tuple(formats)
        self.env = Environment(
            loader=FileSystemLoader(self.search_paths),
            autoescape=select_autoescape(enabled_extensions=("html", "html.j2", "html.jinja", "html.jinja2"), default_for_string=False),
            keep_trailing_newline=False,
        )

    def _candidates(self, prefix: str, name: str, fmt: str) -> list[str]:
        base = f"{prefix}/{name}" if prefix else name
        stem = f"{base}.{fmt}" if fmt else base
        return [stem + suffix for suffix in TEMPLATE_SUFFIXES] + ([stem] if fmt else [])

    def find(self, prefix: str, name: str, *, fmt: str | None = None) -> tuple[Template, str] | None:
        formats = (fmt,) if fmt is not None else self.formats
        for candidate_format in formats:
            for candidate in self._candidates(prefix, name, candidate_format):
                try:
                    return self.env.get_template(candidate), candidate_format
                except TemplateNotFound:
                    continue
        return None

    def exists(self, prefix: str, action_name: str) -> bool:
        return self.find(prefix, action_name) is not None

    def render(
        self,
        prefix: str,
        action_name: str,
        locals: Mapping[str, Any],
        *,
        layout: str | None = None,
    ) -> Rendered:
        found = self.find(prefix, action_name)
        if found is None:
            raise TemplateNotFound(f"{prefix}/{action_name}")
        template, fmt = found
        content = template.render(**locals)
        if layout is not None:
            wrapped = self.find("layouts", layout, fmt=fmt)
            if wrapped is None:
                raise TemplateNotFound(f"layouts/{layout}")
            content = wrapped[0].render(**locals, content=content)
        return Rendered(content, content_type_for_format(fmt))
