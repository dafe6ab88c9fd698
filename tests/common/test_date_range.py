from datetime import date, datetime, timezone

from happystats.common.analytics_models import DateRange
from happystats.common.date_range import (
    filter_data_points_by_date_range,
    get_data_point_date_range,
    sort_by_date,
)


POINTS = [
    {"name": "a", "date": "2024-01-01T08:00:00"},
    {"name": "b", "date": datetime(2024, 1, 5, 23, 30)},
    {"name": "c", "date": date(2024, 1, 10)},
    {"name": "bad", "date": "not a date"},
]


def _names(points):
    return [point["name"] for point in points]


def test_no_range_returns_input_unchanged():
    assert filter_data_points_by_date_range(POINTS, None) is POINTS
    assert filter_data_points_by_date_range(POINTS, DateRange()) is POINTS


def test_start_date_excludes_earlier_days_from_start_of_day():
    result = filter_data_points_by_date_range(
        POINTS, DateRange(start_date=datetime(2024, 1, 5, 18, 0))
    )
    assert _names(result) == ["b", "c"]


def test_end_date_includes_whole_end_day():
    result = filter_data_points_by_date_range(
        POINTS, DateRange(end_date=datetime(2024, 1, 5, 0, 0))
    )
    assert _names(result) == ["a", "b"]


def test_both_bounds_and_unparseable_dates_dropped():
    result = filter_data_points_by_date_range(
        POINTS,
        DateRange(start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 10)),
    )
    assert _names(result) == ["a", "b", "c"]


def test_filter_does_not_mutate_input():
    snapshot = list(POINTS)
    filter_data_points_by_date_range(POINTS, DateRange(start_date=datetime(2024, 1, 6)))
    assert POINTS == snapshot


def test_aware_datetimes_are_compared_in_utc():
    points = [{"name": "late", "date": datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)}]
    result = filter_data_points_by_date_range(
        points, DateRange(end_date=datetime(2024, 1, 1))
    )
    assert result == []


def test_date_range_helpers():
    earliest, latest = get_data_point_date_range(POINTS)
    assert earliest == datetime(2024, 1, 1, 8, 0)
    assert latest == datetime(2024, 1, 10)
    assert get_data_point_date_range([]) is None
    assert get_data_point_date_range([{"date": "??"}]) is None

    assert _names(sort_by_date(list(reversed(POINTS[:3])))) == ["a", "b", "c"]
