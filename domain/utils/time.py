from datetime import UTC, date, datetime, timedelta

from domain.exceptions.currency import ValidationError


def utc_today() -> date:
    return datetime.now(UTC).date()


def yesterday_utc() -> date:
    """Latest date whose closing rate is final (the day flips at 00:00 UTC)."""
    return utc_today() - timedelta(days=1)


def to_utc_date(moment: date | datetime) -> date:
    """Dates pass through; aware datetimes become their UTC calendar date. Naive datetimes are refused."""
    if isinstance(moment, datetime):
        if moment.tzinfo is None or moment.utcoffset() is None:
            raise ValidationError(
                f"Naive datetime {moment.isoformat()} has no timezone, pass an aware datetime or a date"
            )
        return moment.astimezone(UTC).date()
    if isinstance(moment, date):
        return moment
    raise ValidationError(f"Expected a date or datetime, got {type(moment).__name__}")
