import math
import re
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple, Union

from happystats.charts.chart_models import Chart
from happystats.common.dates import coerce_datetime, record_field
from happystats.csv_export.csv_export_models import (
    CSVExportOptions,
    DateFormat,
    ExportStatistics,
)

CSV_HEADERS = ("measurement", "date", "name", "category")


def _today() -> date:
    return datetime.now(timezone.utc).date()


def format_date_for_csv(
    value: Any, date_format: DateFormat = DateFormat.ISO, today: Optional[date] = None
) -> str:
    """
    Render a date as YYYY-MM-DD (ISO), M/D/YYYY (US) or DD/MM/YYYY (EU).

    Values that cannot be read as a date fall back to today. The importer
    reads slash dates month-first, so only ISO and US output re-import as
    the same day; an EU day below 13 comes back with day and month swapped.
    """
    parsed = coerce_datetime(value)
    day = parsed.date() if parsed is not None else (today or _today())

    if date_format == DateFormat.US:
        return f"{day.month}/{day.day}/{day.year}"
    if date_format == DateFormat.EU:
        return f"{day.day:02d}/{day.month:02d}/{day.year}"
    return day.isoformat()


def format_measurement(value: Any) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def escape_csv_field(value: Any) -> str:
    """Quote a field only when it holds a comma, quote or newline"""
    text = str(value)
    if "," in text or '"' in text or "\n" in text:
        return quote_csv_field(text)
    return text


def quote_csv_field(value: Any) -> str:
    return '"' + str(value).replace('"', '""') + '"'


def _csv_line(data_point: Any, category: str, date_format: DateFormat) -> str:
    return ",".join(
        [
            escape_csv_field(format_measurement(record_field(data_point, "measurement"))),
            escape_csv_field(format_date_for_csv(record_field(data_point, "date"), date_format)),
            quote_csv_field(record_field(data_point, "name")),
            quote_csv_field(category),
        ]
    )


def _sorted_rows(rows: List[Tuple[Any, str]]) -> List[Tuple[Any, str]]:
    return sorted(
        rows,
        key=lambda row: coerce_datetime(record_field(row[0], "date")) or datetime.min,
    )


def data_points_to_csv(
    data_points: Sequence[Any],
    category: str,
    options: Optional[CSVExportOptions] = None,
) -> str:
    """
    Serialize data points of one category, oldest first.

    Output columns match what the CSV importer detects, with name and
    category always quoted.
    """
    options = options or CSVExportOptions()
    lines = [",".join(CSV_HEADERS)] if options.include_headers else []

    for data_point, point_category in _sorted_rows(
        [(point, category) for point in data_points if point is not None]
    ):
        lines.append(_csv_line(data_point, point_category, options.date_format))

    return "\n".join(lines)


def chart_to_csv(chart: Chart, options: Optional[CSVExportOptions] = None) -> str:
    if chart is None or chart.data_points is None:
        raise ValueError("Invalid chart data provided")

    return data_points_to_csv(chart.data_points, chart.category, options)


def charts_to_csv(
    charts: Sequence[Chart], options: Optional[CSVExportOptions] = None
) -> str:
    options = options or CSVExportOptions()
    lines = [",".join(CSV_HEADERS)] if options.include_headers else []

    rows = [(point, chart.category) for chart in charts for point in chart.data_points]
    for data_point, category in _sorted_rows(rows):
        lines.append(_csv_line(data_point, category, options.date_format))

    return "\n".join(lines)


def _safe_name(name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9\s-]", "", name)
    return re.sub(r"\s+", "-", cleaned).lower()


def generate_csv_filename(
    charts: Union[Chart, Sequence[Chart]], today: Optional[date] = None
) -> str:
    stamp = (today or _today()).isoformat()

    if isinstance(charts, Chart):
        return f"{_safe_name(charts.name)}-{stamp}.csv"

    if len(charts) == 0:
        return f"happystats-export-{stamp}.csv"
    if len(charts) == 1:
        return f"{_safe_name(charts[0].name)}-{stamp}.csv"
    return f"happystats-{len(charts)}-charts-{stamp}.csv"


def validate_chart_for_export(chart: Optional[Chart]) -> Tuple[bool, List[str]]:
    errors: List[str] = []

    if chart is None:
        return False, ["Chart data is missing"]

    if not chart.name or not chart.name.strip():
        errors.append("Chart name is required")

    if not chart.category or not chart.category.strip():
        errors.append("Chart category is required")

    if not chart.data_points:
        errors.append("Chart has no data points to export")

    for index, data_point in enumerate(chart.data_points, start=1):
        if not math.isfinite(data_point.measurement):
            errors.append(f"Data point {index}: Invalid measurement value")
        if coerce_datetime(data_point.date) is None:
            errors.append(f"Data point {index}: Invalid date")
        if not data_point.name or not data_point.name.strip():
            errors.append(f"Data point {index}: Missing name")

    return not errors, errors


def get_export_statistics(charts: Sequence[Chart]) -> ExportStatistics:
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None
    total_data_points = 0
    categories = set()

    for chart in charts:
        total_data_points += len(chart.data_points)
        categories.add(chart.category)

        for data_point in chart.data_points:
            point_date = coerce_datetime(data_point.date)
            if point_date is None:
                continue
            if earliest is None or point_date < earliest:
                earliest = point_date
            if latest is None or point_date > latest:
                latest = point_date

    return ExportStatistics(
        total_charts=len(charts),
        total_data_points=total_data_points,
        earliest=earliest,
        latest=latest,
        categories=sorted(categories),
    )
