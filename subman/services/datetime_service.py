"""Timestamp handling for the manifest's ``last_updated`` field."""

from __future__ import annotations

from datetime import UTC, datetime

import pendulum

# Output format used in the manifest: 2026-02-02T22:21:29Z
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(UTC)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as a second-precision ISO-8601 UTC timestamp.

    Naive datetimes are taken to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a lax timestamp string into a timezone-aware datetime.

    Missing timezone defaults to UTC; date-only strings become midnight.
    """
    parsed = pendulum.parse(value.strip(), tz="UTC", strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz="UTC"  # type: ignore[union-attr]
        )
    return parsed


def describe_age(value: str, now: datetime | None = None) -> str:
    """Describe how long ago ``value`` was, e.g. ``"3 hours ago"``."""
    then = pendulum.instance(parse_timestamp(value))
    other = pendulum.instance(now) if now is not None else pendulum.now("UTC")
    return f"{then.diff_for_humans(other, absolute=True)} ago"
