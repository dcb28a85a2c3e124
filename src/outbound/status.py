"""HTTP status matching for callbacks and job hooks."""

from __future__ import annotations

from http import HTTPStatus
from typing import Iterable, Union

from .exceptions import ConfigurationError

StatusLike = Union[int, str, HTTPStatus]
StatusSpec = Union[StatusLike, range, Iterable[StatusLike], None]

ALL_STATUSES = range(100, 600)


def _status_names() -> dict[str, int]:
    names = {status.name.lower(): status.value for status in HTTPStatus}
    # Aliases kept for names that were renamed between HTTP RFCs.
    names.setdefault("unprocessable_entity", 422)
    names.setdefault("unprocessable_content", 422)
    names.setdefault("payload_too_large", 413)
    names.setdefault("request_entity_too_large", 413)
    names.setdefault("content_too_large", 413)
    names.setdefault("request_uri_too_long", 414)
    names.setdefault("uri_too_long", 414)
    names.setdefault("requested_range_not_satisfiable", 416)
    names.setdefault("range_not_satisfiable", 416)
    return names


SYMBOL_TO_STATUS_CODE = _status_names()


def status_code(status: StatusLike) -> int:
    """Return the integer code for an int, ``HTTPStatus`` or symbolic name."""
    if isinstance(status, bool):
        raise ConfigurationError(f"Unrecognized HTTP status: {status!r}")
    if isinstance(status, int):
        return int(status)
    if isinstance(status, str):
        key = status.strip().lower().replace(" ", "_").replace("-", "_")
        if key.isdigit():
            return int(key)
        try:
            return SYMBOL_TO_STATUS_CODE[key]
        except KeyError:
            raise ConfigurationError(f"Unrecognized HTTP status: {status!r}") from None
    raise ConfigurationError(f"Unrecognized HTTP status: {status!r}")


class StatusFilter:
    """Match a status code against a range, a set of codes, or everything.

    ``inclusion=False`` inverts the match so the same declaration can express
    ``except_status``.
    """

    def __init__(self, spec: StatusSpec = None, *, inclusion: bool = True) -> None:
        self.inclusion = inclusion
        self._codes = self._normalize(spec)

    @classmethod
    def from_options(
        cls,
        only_status: StatusSpec = None,
        except_status: StatusSpec = None,
    ) -> StatusFilter:
        if only_status is not None and except_status is not None:
            raise ConfigurationError("pass either only_status: or except_status:, not both")
        if except_status is not None:
            return cls(except_status, inclusion=False)
        return cls(only_status)

    @staticmethod
    def _normalize(spec: StatusSpec) -> range | frozenset[int]:
        if spec is None:
            return ALL_STATUSES
        if isinstance(spec, range):
            if spec.step != 1:
                return frozenset(spec)
            return spec
        if isinstance(spec, (int, str, HTTPStatus)):
            return frozenset({status_code(spec)})
        return frozenset(status_code(status) for status in spec)

    def matches(self, status: StatusLike) -> bool:
        matched = status_code(status) in self._codes
        return matched if self.inclusion else not matched

    __contains__ = matches

    def __repr__(self) -> str:
        codes = self._codes
        if isinstance(codes, range):
            described = f"{codes.start}..{codes.stop - 1}"
        else:
            described = ", ".join(str(code) for code in sorted(codes))
        polarity = "" if self.inclusion else "not "
        return f"StatusFilter({polarity}{described})"
