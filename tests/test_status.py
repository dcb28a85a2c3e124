from __future__ import annotations

from http import HTTPStatus

import pytest

from outbound.exceptions import ConfigurationError
from outbound.status import StatusFilter, status_code


def test_status_code_accepts_names_and_integers() -> None:
    assert status_code(401) == 401
    assert status_code("unauthorized") == 401
    assert status_code("Unprocessable Entity") == 422
    assert status_code(HTTPStatus.NOT_FOUND) == 404
    assert status_code("503") == 503


@pytest.mark.parametrize(
    ("name", "code"),
    [
        ("payload_too_large", 413),
        ("request_entity_too_large", 413),
        ("content_too_large", 413),
        ("uri_too_long", 414),
        ("request_uri_too_long", 414),
        ("range_not_satisfiable", 416),
        ("requested_range_not_satisfiable", 416),
        ("unprocessable_entity", 422),
        ("unprocessable_content", 422),
    ],
)
def test_renamed_statuses_resolve_under_both_spellings(name: str, code: int) -> None:
    assert status_code(name) == code


def test_status_code_rejects_unknown_names() -> None:
    with pytest.raises(ConfigurationError, match="Unrecognized HTTP status"):
        status_code("not_a_status")


def test_absent_spec_matches_every_status() -> None:
    status_filter = StatusFilter()

    assert status_filter.matches(100)
    assert status_filter.matches(599)
    assert not status_filter.matches(600)


def test_range_bounds_are_inclusive_of_declared_codes() -> None:
    status_filter = StatusFilter(range(400, 501))

    assert status_filter.matches(400)
    assert status_filter.matches(500)
    assert not status_filter.matches(399)
    assert not status_filter.matches(501)


@pytest.mark.parametrize("spec", [401, "unauthorized", [401, 403], ["unauthorized", 403], range(400, 500)])
def test_alias_and_code_match_identically(spec) -> None:
    status_filter = StatusFilter(spec)

    assert status_filter.matches(401) is status_filter.matches("unauthorized")
    assert status_filter.matches(401)


def test_mixed_list_of_codes_and_names() -> None:
    status_filter = StatusFilter(["unauthorized", 403])

    assert status_filter.matches(401)
    assert status_filter.matches("forbidden")
    assert not status_filter.matches(404)


def test_exclusion_inverts_the_match() -> None:
    status_filter = StatusFilter(200, inclusion=False)

    assert not status_filter.matches("ok")
    assert status_filter.matches(422)


def test_from_options_rejects_only_and_except_together() -> None:
    with pytest.raises(ConfigurationError, match="only_status"):
        StatusFilter.from_options(only_status=200, except_status=500)


def test_from_options_builds_exclusion_filter() -> None:
    status_filter = StatusFilter.from_options(except_status=[200, 201])

    assert not status_filter.inclusion
    assert status_filter.matches(500)
    assert not status_filter.matches(201)
