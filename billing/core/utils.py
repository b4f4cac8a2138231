from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP


def convert_unix_timestamp_to_datetime(timestamp: int | None) -> datetime | None:
    """
    Convert a Unix timestamp (seconds since epoch) to a timezone-aware datetime object.

    Args:
        timestamp: Seconds since the epoch, or None.

    Returns:
        A timezone-aware datetime object in UTC corresponding to the given timestamp,
        or None if the timestamp is None.

    Example:
        >>> convert_unix_timestamp_to_datetime(1700000000)
        datetime.datetime(2023, 11, 14, 22, 13, 20, tzinfo=datetime.timezone.utc)
    """
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def resolve_next_billing_date(
    period_end: datetime | None,
    fallback_days: int,
    now: datetime | None = None,
) -> datetime:
    """
    Resolve the next billing date from a provider period end.

    Args:
        period_end: Period end reported by the provider, if any.
        fallback_days: Days from now used when the provider omits the period end.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        The provider period end, or now + fallback_days.
    """
    if period_end is not None:
        return ensure_utc(period_end)  # type: ignore[return-value]
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=fallback_days)


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal currency amount to integer minor units (e.g. cents)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    """Convert integer minor units to a two-decimal currency amount."""
    return (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"))
