"""Timezone helpers. Everything is stored and compared in UTC."""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Current time, timezone-aware UTC"""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def expires_after(seconds: int, now: datetime | None = None) -> datetime:
    """Absolute expiry ``seconds`` from ``now``"""
    return (now or utc_now()) + timedelta(seconds=seconds)
