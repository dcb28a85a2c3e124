"""Content-type driven response body decoders."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from typing import Any, Callable, Mapping

from .exceptions import ParseError

Decoder = Callable[[Any], Any]

# Aliases that resolve to a canonical MIME type before a decoder lookup.
CANONICAL_TYPES = {
    "text/json": "application/json",
    "text/x-json": "application/json",
    "application/x-json": "application/json",
    "text/xml": "application/xml",
    "application/x-xml": "application/xml",
}


def _text(body: Any) -> str:
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("utf-8")
    return str(body)


def decode_json(body: Any) -> Any:
    return json.loads(_text(body))


def decode_xml(body: Any) -> ET.Element:
    if isinstance(body, str):
        body = body.encode("utf-8")
    return ET.fromstring(body)


def identity(body: Any) -> Any:
    return body


def normalize(content_type: str) -> str:
    """Lower-case a MIME type, drop whitespace and map known aliases."""
    cleaned = ";".join(part.strip() for part in content_type.lower().split(";"))
    return CANONICAL_TYPES.get(cleaned, cleaned)


def before_parameters(content_type: str) -> str:
    before, _, _ = content_type.partition(";")
    return before.strip()


class CodecRegistry:
    """Map content types to decoders.

    Lookup goes exact type, then the normalized type, then the type with its
    parameters stripped. Anything left unmatched passes through unchanged.
    """

    def __init__(self, decoders: Mapping[str, Decoder] | None = None) -> None:
        self._decoders: dict[str, Decoder] = {}
        for content_type, decoder in (decoders or {}).items():
            self.register(content_type, decoder)

    def register(self, content_type: str, decoder: Decoder) -> None:
        self._decoders[content_type] = decoder

    def unregister(self, content_type: str) -> None:
        self._decoders.pop(content_type, None)

    def copy(self) -> CodecRegistry:
        return CodecRegistry(self._decoders)

    def __contains__(self, content_type: str) -> bool:
        return self.lookup(content_type) is not identity

    def lookup(self, content_type: str) -> Decoder:
        if content_type in self._decoders:
            return self._decoders[content_type]
        normalized = {normalize(key): decoder for key, decoder in self._decoders.items()}
        decoder = normalized.get(normalize(content_type))
        if decoder is not None:
            return decoder
        if ";" in content_type:
            return self.lookup(before_parameters(content_type))
        return identity

    def decode(self, content_type: str | None, body: Any) -> Any:
        if not body:
            return body
        decoder = self.lookup(content_type or "")
        try:
            return decoder(body)
        except Exception as exc:
            raise ParseError(exc, body, content_type or "") from exc


def default_codecs() -> CodecRegistry:
    return CodecRegistry(
        {
            "application/json": decode_json,
            "application/ld+json": decode_json,
            "application/problem+json": decode_json,
            "application/xml": decode_xml,
        }
    )
