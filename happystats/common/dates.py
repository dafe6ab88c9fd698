import logging
from datetime import date, datetime, time, timezone
from typing import Any, Mapping, Optional

from dateutil import parser as dateparser

logger = logging.getLogger(__name__)


def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a datetime, date or date string into a naive UTC datetime.

    Returns None when the value cannot be interpreted as a date.
    Aware datetimes are converted to UTC before the timezone is dropped so
    that values coming from different sources compare consistently.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, date):
        return datetime.combine(value, time.min)

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return coerce_datetime(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    try:
        return coerce_datetime(dateparser.parse(text))
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable date value '{text}'")
        return None


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


def record_field(record: Any, field: str) -> Any:
    """Read a field from a mapping or an object attribute"""
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)
