"""
Input validation for the aggregation boundary

Period, currency and date query values are checked here before any
aggregation runs. Failures raise ValidationError so nothing downstream ever
sees malformed input.
"""
from datetime import datetime, timezone
from typing import Optional

from app.errors import ValidationError
from app.models.enums import Currency, PeriodKind


def parse_period(value: Optional[str], default: PeriodKind = PeriodKind.MONTH) -> PeriodKind:
    """Validate a period keyword; None falls back to `default`."""
    if value is None or value == "":
        return default
    try:
        return PeriodKind(value)
    except ValueError:
        allowed = ", ".join(p.value for p in PeriodKind)
        raise ValidationError("period", value, f"expected one of {allowed}")


def parse_currency(value: Optional[str], default: Optional[str] = None) -> Currency:
    """Validate a currency code; None falls back to the user's preference."""
    raw = value if value else default
    if raw is None:
        raise ValidationError("currency", value, "no currency given and no default")
    try:
        return Currency(raw)
    except ValueError:
        allowed = ", ".join(c.value for c in Currency)
        raise ValidationError("currency", raw, f"expected one of {allowed}")


def to_naive_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC; convert aware values, leave naive ones alone."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date(field: str, value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 date/datetime; aware values are converted to naive UTC."""
    if value is None or value == "":
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(field, value, "expected ISO 8601 date")
    return to_naive_utc(parsed)
