"""Shared datetime utilities."""

from __future__ import annotations

import re
from datetime import datetime, timezone

_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 datetime string, returning None on invalid input.

    Handles common variations:
    - With timezone Z suffix: 2026-02-12T10:30:00Z
    - With timezone offset: 2026-02-12T10:30:00-08:00
    - Without timezone: 2026-02-12T10:30:00 (treated as UTC)

    Returns an aware datetime normalized to UTC, so timestamps written with
    mixed offsets compare correctly.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip().replace("Z", "+00:00")
    # fromisoformat only takes 3 or 6 fraction digits before 3.11
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso_z(value: datetime) -> str:
    """Format an aware datetime as UTC with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms(value: datetime | None = None) -> int:
    """Milliseconds since the epoch, used for SSE ready/ping payloads."""
    return int((value or utc_now()).timestamp() * 1000)
