from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple, TypeVar

from happystats.common.analytics_models import DateRange
from happystats.common.dates import coerce_datetime, end_of_day, record_field, start_of_day

T = TypeVar("T")


def filter_data_points_by_date_range(
    data_points: Sequence[T], date_range: Optional[DateRange]
) -> Sequence[T]:
    """
    Keep the points dated within [start-of-day(start), end-of-day(end)].

    A missing range, or one with neither bound set, returns the input as is.
    Points whose date cannot be parsed are left out. The input is never
    modified.
    """
    if date_range is None or date_range.is_unbounded():
        return data_points

    lower = None
    if date_range.start_date is not None:
        lower = start_of_day(coerce_datetime(date_range.start_date))

    upper = None
    if date_range.end_date is not None:
        upper = end_of_day(coerce_datetime(date_range.end_date))

    filtered = []
    for point in data_points:
        point_date = coerce_datetime(record_field(point, "date"))
        if point_date is None:
            continue
        if lower is not None and point_date < lower:
            continue
        if upper is not None and point_date > upper:
            continue
        filtered.append(point)

    return filtered


def get_data_point_date_range(
    data_points: Sequence[Any],
) -> Optional[Tuple[datetime, datetime]]:
    """Earliest and latest parseable dates, or None when there are none"""
    valid_dates: List[datetime] = []
    for point in data_points:
        point_date = coerce_datetime(record_field(point, "date"))
        if point_date is not None:
            valid_dates.append(point_date)

    if not valid_dates:
        return None

    return min(valid_dates), max(valid_dates)


def sort_by_date(data_points: Sequence[T]) -> List[T]:
    """Date-ascending copy; unparseable dates sort first"""
    return sorted(
        data_points,
        key=lambda point: coerce_datetime(record_field(point, "date")) or datetime.min,
    )
