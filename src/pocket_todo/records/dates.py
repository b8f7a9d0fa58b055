# src/pocket_todo/records/dates.py

from __future__ import annotations

from datetime import UTC, datetime


def to_iso_z(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a 'Z' suffix (2024-06-01T00:00:00.000Z)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_due_date(value: object) -> datetime | None:
    """
    Parse an ISO-8601 due date into an aware datetime.

    Naive values are taken as UTC. Returns None for empty or unparsable input
    instead of raising, so callers can place such tasks deterministically.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt
