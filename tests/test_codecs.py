from __future__ import annotations

import pytest

from outbound.codecs import CodecRegistry, default_codecs, identity
from outbound.exceptions import ParseError


def test_decodes_json_by_exact_content_type() -> None:
    body = default_codecs().decode("application/json", b'{"ok": true}')

    assert body["ok"] is True


def test_decodes_json_with_charset_parameter() -> None:
    body = default_codecs().decode("application/json;charset=UTF-8", b'{"title": "Encoded", "id": 1}')

    assert body == {"title": "Encoded", "id": 1}


def test_normalizes_aliases_and_case_before_lookup() -> None:
    codecs = default_codecs()

    assert codecs.decode("Text/JSON", '{"a": 1}') == {"a": 1}
    assert codecs.decode("text/xml; charset=utf-8", "<a id='1'/>").attrib["id"] == "1"


def test_decodes_xml_documents() -> None:
    root = default_codecs().decode("application/xml", b'<article title="Encoded as XML" id="1"></article>')

    assert root.tag == "article"
    assert root.attrib["title"] == "Encoded as XML"


def test_unmatched_content_type_passes_body_through() -> None:
    codecs = default_codecs()

    assert codecs.lookup("text/plain") is identity
    assert codecs.decode("text/plain", b"success") == b"success"
    assert codecs.decode(None, "raw") == "raw"


def test_empty_body_is_never_decoded() -> None:
    calls: list[object] = []
    codecs = CodecRegistry({"application/json": lambda body: calls.append(body)})

    assert codecs.decode("application/json", b"") == b""
    assert codecs.decode("application/json", "") == ""
    assert calls == []


def test_malformed_json_raises_parse_error_with_original_body() -> None:
    with pytest.raises(ParseError) as info:
        default_codecs().decode("application/json", b"{not json")

    assert info.value.body == b"{not json"
    assert info.value.content_type == "application/json"
    assert isinstance(info.value.cause, ValueError)


def test_malformed_xml_raises_parse_error() -> None:
    with pytest.raises(ParseError) as info:
        default_codecs().decode("application/xml", b"<open>")

    assert info.value.body == b"<open>"


def test_registered_decoders_extend_the_defaults() -> None:
    codecs = default_codecs()
    codecs.register("text/csv", lambda body: body.decode().split(","))

    assert codecs.decode("text/csv; header=present", b"a,b") == ["a", "b"]
    assert "text/csv" in codecs
    assert "text/csv" not in default_codecs()
