from datetime import date, datetime

import pytest

from happystats.charts.chart_models import Chart, DataPoint
from happystats.csv_export.csv_export_models import CSVExportOptions, DateFormat
from happystats.csv_export.csv_formatter import (
    chart_to_csv,
    charts_to_csv,
    escape_csv_field,
    format_date_for_csv,
    format_measurement,
    generate_csv_filename,
    get_export_statistics,
    validate_chart_for_export,
)
from happystats.csv_import.csv_parser import parse_and_validate_csv

TODAY = date(2024, 6, 30)


def _point(measurement, when, name, chart_id="c1"):
    return DataPoint(
        id=f"{chart_id}-{name}", chart_id=chart_id, measurement=measurement, date=when, name=name
    )


def _chart(name="Body Weight", category="Health", points=None, chart_id="c1"):
    return Chart(
        id=chart_id,
        user_id="u1",
        name=name,
        category=category,
        data_points=points if points is not None else [],
    )


WEIGHT = _chart(
    points=[
        _point(71.2, datetime(2024, 3, 5, 7, 30), "Morning"),
        _point(70, datetime(2024, 1, 9), "Start"),
    ]
)


def test_chart_to_csv_sorts_by_date_and_quotes_text_fields():
    assert chart_to_csv(WEIGHT) == "\n".join(
        [
            "measurement,date,name,category",
            '70,2024-01-09,"Start","Health"',
            '71.2,2024-03-05,"Morning","Health"',
        ]
    )


def test_headers_can_be_left_out():
    csv_text = chart_to_csv(WEIGHT, CSVExportOptions(include_headers=False))
    assert csv_text.splitlines()[0] == '70,2024-01-09,"Start","Health"'


@pytest.mark.parametrize(
    "date_format, expected",
    [(DateFormat.ISO, "2024-03-05"), (DateFormat.US, "3/5/2024"), (DateFormat.EU, "05/03/2024")],
)
def test_date_formats(date_format, expected):
    assert format_date_for_csv(datetime(2024, 3, 5, 22, 0), date_format) == expected


def test_unreadable_dates_fall_back_to_today():
    assert format_date_for_csv("garbage", today=TODAY) == "2024-06-30"
    assert format_date_for_csv(None, DateFormat.US, today=TODAY) == "6/30/2024"


def test_field_escaping():
    assert escape_csv_field("plain") == "plain"
    assert escape_csv_field("a,b") == '"a,b"'
    assert escape_csv_field('say "hi"') == '"say ""hi"""'
    assert escape_csv_field("two\nlines") == '"two\nlines"'

    chart = _chart(category='Say "cheese"', points=[_point(1, datetime(2024, 1, 1), "x")])
    assert chart_to_csv(chart).splitlines()[1] == '1,2024-01-01,"x","Say ""cheese"""'


def test_format_measurement():
    assert format_measurement(5.0) == "5"
    assert format_measurement(-2) == "-2"
    assert format_measurement(0.1) == "0.1"
    assert format_measurement(1234.5678) == "1234.5678"


def test_chart_to_csv_requires_a_chart():
    with pytest.raises(ValueError, match="Invalid chart data provided"):
        chart_to_csv(None)


def test_exported_csv_can_be_imported_again():
    for date_format in (DateFormat.ISO, DateFormat.US):
        result = parse_and_validate_csv(
            chart_to_csv(WEIGHT, CSVExportOptions(date_format=date_format))
        )

        assert result.is_valid is True
        assert [(p.measurement, p.date, p.name, p.category) for p in result.valid_rows] == [
            (70.0, datetime(2024, 1, 9), "Start", "Health"),
            (71.2, datetime(2024, 3, 5), "Morning", "Health"),
        ]


def test_charts_to_csv_merges_categories_by_date():
    sleep = _chart(
        name="Sleep",
        category="Rest",
        chart_id="c2",
        points=[_point(7.5, datetime(2024, 2, 1), "Night", chart_id="c2")],
    )

    lines = charts_to_csv([WEIGHT, sleep]).splitlines()

    assert lines[1:] == [
        '70,2024-01-09,"Start","Health"',
        '7.5,2024-02-01,"Night","Rest"',
        '71.2,2024-03-05,"Morning","Health"',
    ]


def test_generate_csv_filename():
    assert generate_csv_filename(WEIGHT, today=TODAY) == "body-weight-2024-06-30.csv"
    assert generate_csv_filename(_chart(name="Mood (daily)!"), today=TODAY) == "mood-daily-2024-06-30.csv"
    assert generate_csv_filename([], today=TODAY) == "happystats-export-2024-06-30.csv"
    assert generate_csv_filename([WEIGHT], today=TODAY) == "body-weight-2024-06-30.csv"
    assert generate_csv_filename([WEIGHT, WEIGHT], today=TODAY) == "happystats-2-charts-2024-06-30.csv"


def test_validate_chart_for_export():
    assert validate_chart_for_export(WEIGHT) == (True, [])
    assert validate_chart_for_export(None) == (False, ["Chart data is missing"])

    is_valid, errors = validate_chart_for_export(_chart(name=" ", category=""))
    assert is_valid is False
    assert errors == [
        "Chart name is required",
        "Chart category is required",
        "Chart has no data points to export",
    ]


def test_export_statistics():
    empty = _chart(name="Empty", category="Health", chart_id="c3")
    sleep = _chart(
        name="Sleep",
        category="Rest",
        chart_id="c2",
        points=[_point(7.5, datetime(2024, 2, 1), "Night", chart_id="c2")],
    )

    stats = get_export_statistics([WEIGHT, sleep, empty])

    assert stats.total_charts == 3
    assert stats.total_data_points == 3
    assert stats.earliest == datetime(2024, 1, 9)
    assert stats.latest == datetime(2024, 3, 5, 7, 30)
    assert stats.categories == ["Health", "Rest"]

    nothing = get_export_statistics([])
    assert nothing.total_charts == 0
    assert nothing.earliest is None


def test_eu_export_reimports_month_first():
    chart = _chart(points=[_point(1, datetime(2024, 1, 5), "a"), _point(2, datetime(2024, 1, 20), "b")])

    result = parse_and_validate_csv(chart_to_csv(chart, CSVExportOptions(date_format=DateFormat.EU)))

    assert [p.date for p in result.valid_rows] == [datetime(2024, 5, 1), datetime(2024, 1, 20)]
