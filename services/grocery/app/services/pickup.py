from __future__ import annotations

from datetime import UTC, datetime, timedelta

PICKUP_SLOT = timedelta(minutes=30)


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC. Naive datetimes are taken to already be UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def pickup_window(start: datetime) -> tuple[datetime, datetime]:
    return start, start + PICKUP_SLOT


def _clock(value: datetime) -> str:
    return value.strftime("%I:%M %p").lstrip("0")


def format_pickup_window(start: datetime) -> str:
    """Render a pickup slot, e.g. 'Friday, April 18, 2:00 PM - 2:30 PM'."""

    begin, end = pickup_window(start)
    return f"{begin.strftime('%A, %B')} {begin.day}, {_clock(begin)} - {_clock(end)}"
