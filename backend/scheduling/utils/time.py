from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..domain.errors import InvalidConfigurationError

UTC = timezone.utc


@lru_cache(maxsize=256)
def load_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidConfigurationError(f"unknown timezone: {name}") from exc


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(UTC)


def to_utc_naive(dt: datetime) -> datetime:
    return ensure_aware(dt).replace(tzinfo=None)


def utc_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)
