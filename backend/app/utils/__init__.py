from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.config import settings

PROVIDER_DAY_FORMAT = "%Y%m%d"


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    MongoDB hands datetimes back without tzinfo. Wrap them with ensure_utc()
    before comparing against utcnow(), which is tz-aware.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def as_utc(dt: datetime | None) -> datetime | None:
    """None-safe UTC conversion for API response boundaries."""
    if dt is None:
        return None
    return ensure_utc(dt)


def epoch_to_utc(value: int | str | None) -> datetime | None:
    """Convert provider Unix seconds (int or numeric string) to UTC datetime."""
    if value is None or value == "":
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _provider_tz() -> ZoneInfo:
    return ZoneInfo(settings.PROVIDER_DAY_TIMEZONE)


def provider_day(offset_days: int = 0, *, now: datetime | None = None) -> str:
    """Calendar day in the provider timezone as YYYYMMDD, shifted by offset_days."""
    reference = ensure_utc(now) if now is not None else utcnow()
    local = reference.astimezone(_provider_tz()) + timedelta(days=offset_days)
    return local.strftime(PROVIDER_DAY_FORMAT)


def parse_provider_day(day: str) -> datetime:
    """Parse YYYYMMDD into local midnight of that day in the provider timezone.

    Raises ValueError for anything that is not an 8-digit calendar date.
    """
    text = str(day or "").strip()
    if len(text) != 8 or not text.isdigit():
        raise ValueError(f"Invalid provider day '{day}', expected YYYYMMDD.")
    parsed = datetime.strptime(text, PROVIDER_DAY_FORMAT)
    return parsed.replace(tzinfo=_provider_tz())


def day_bounds_epoch(day: str) -> tuple[int, int]:
    """Inclusive [start, end] Unix seconds covering one provider calendar day."""
    start = parse_provider_day(day)
    end = start + timedelta(days=1) - timedelta(seconds=1)
    return int(start.timestamp()), int(end.timestamp())
