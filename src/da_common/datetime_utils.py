"""UTC datetime utilities."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def iso_or_none(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None
