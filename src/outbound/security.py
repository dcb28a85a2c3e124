"""Header redaction for logs and Retry-After parsing for job backoff."""

from __future__ import annotations

import datetime as _dt
from email.utils import parsedate_to_datetime
from typing import Iterable, Mapping

SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
        "x-auth-token",
    }
)


def sanitize_headers(
    headers: Mapping[str, str],
    *,
    sensitive: Iterable[str] = SENSITIVE_HEADERS,
) -> dict[str, str]:
    """Return headers with credential values redacted for logging."""
    hidden = {name.lower() for name in sensitive}
    return {key: "[REDACTED]" if key.lower() in hidden else value for key, value in headers.items()}


def parse_retry_after(raw: str | None) -> float | None:
    """Parse a Retry-After header (delta-seconds or HTTP-date) into seconds."""
    if raw is None:
        return None

    raw = raw.strip()
    if not raw:
        return None

    try:
        return max(0.0, float(raw))
    except ValueError:
        pass

    try:
        parsed = parsedate_to_datetime(raw)
    except (ValueError, TypeError, OverflowError):
        return None

    if parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=_dt.timezone.utc)

    delta = (parsed - _dt.datetime.now(_dt.timezone.utc)).total_seconds()
    return max(0.0, delta)
