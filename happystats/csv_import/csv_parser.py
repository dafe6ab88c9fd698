import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from happystats.common.dates import coerce_datetime
from happystats.csv_import.csv_import_models import (
    CSVDataPoint,
    CSVImportOptions,
    ImportValidationResult,
)

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("measurement", "date", "name", "category")

COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "measurement": ("measurement", "value", "amount", "data", "number"),
    "date": ("date", "timestamp", "time", "when"),
    "name": ("name", "label", "description", "title"),
    "category": ("category", "type", "group", "class"),
}

MAX_NAME_LENGTH = 255
MAX_CATEGORY_LENGTH = 100

MAX_FILE_SIZE = 5 * 1024 * 1024
VALID_CONTENT_TYPES = ("text/csv", "application/csv", "text/plain")
VALID_EXTENSIONS = (".csv", ".txt")


def _clean_cell(cell: str) -> str:
    cell = cell.strip()
    if cell.startswith('"'):
        cell = cell[1:]
    if cell.endswith('"'):
        cell = cell[:-1]
    return cell


def parse_csv_text(csv_text: str) -> List[List[str]]:
    """
    Split CSV text into rows of cleaned cells.

    Cells are split on every comma; quoted fields containing commas or
    escaped quotes are not supported.
    """
    return [
        [_clean_cell(cell) for cell in line.split(",")]
        for line in csv_text.strip().split("\n")
    ]


def detect_column_mapping(headers: Sequence[str]) -> Dict[str, int]:
    mapping: Dict[str, int] = {}

    for column, aliases in COLUMN_ALIASES.items():
        for index, header in enumerate(headers):
            lowered = header.lower()
            if any(alias in lowered for alias in aliases):
                mapping[column] = index
                break

    return mapping


def _cell(row: Sequence[str], index: int) -> str:
    return row[index].strip() if index < len(row) else ""


def _parse_measurement(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def validate_data_point(
    row: Sequence[str], mapping: Dict[str, int], row_index: int
) -> Tuple[bool, List[str], Optional[CSVDataPoint]]:
    errors = [
        f"Missing required column: {column}"
        for column in REQUIRED_COLUMNS
        if column not in mapping
    ]
    if errors:
        return False, errors, None

    label = f"Row {row_index + 1}"
    measurement_text = _cell(row, mapping["measurement"])
    date_text = _cell(row, mapping["date"])
    name = _cell(row, mapping["name"])
    category = _cell(row, mapping["category"])

    measurement = None
    if not measurement_text:
        errors.append(f"{label}: Measurement is required")
    else:
        measurement = _parse_measurement(measurement_text)
        if measurement is None:
            errors.append(f'{label}: Invalid measurement value "{measurement_text}"')

    date = None
    if not date_text:
        errors.append(f"{label}: Date is required")
    else:
        date = coerce_datetime(date_text)
        if date is None:
            errors.append(f'{label}: Invalid date format "{date_text}"')

    if not name:
        errors.append(f"{label}: Name is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"{label}: Name too long (max {MAX_NAME_LENGTH} characters)")

    if not category:
        errors.append(f"{label}: Category is required")
    elif len(category) > MAX_CATEGORY_LENGTH:
        errors.append(
            f"{label}: Category too long (max {MAX_CATEGORY_LENGTH} characters)"
        )

    if errors:
        return False, errors, None

    return (
        True,
        [],
        CSVDataPoint(measurement=measurement, date=date, name=name, category=category),
    )


def parse_and_validate_csv(
    csv_text: str, options: Optional[CSVImportOptions] = None
) -> ImportValidationResult:
    """
    Parse CSV text and validate every data row.

    Structural problems (empty text, missing columns) fail immediately.
    Row problems are collected: invalid rows are left out of valid_rows and
    their messages accumulate in errors, so a caller can still use the
    valid subset.
    """
    if not isinstance(csv_text, str):
        raise TypeError(f"CSV data must be a string, got {type(csv_text).__name__}")

    options = options or CSVImportOptions()

    if not csv_text.strip():
        return ImportValidationResult(
            is_valid=False, errors=["CSV file is empty"], valid_rows=[], total_rows=0
        )

    rows = parse_csv_text(csv_text)
    headers = rows[0]
    mapping = detect_column_mapping(headers)

    missing_columns = [column for column in REQUIRED_COLUMNS if column not in mapping]
    if missing_columns:
        logger.info(f"CSV rejected, missing columns: {missing_columns}")
        return ImportValidationResult(
            is_valid=False,
            errors=[
                f"Missing required columns: {', '.join(missing_columns)}",
                f"Available columns: {', '.join(headers)}",
                f"Expected columns: {', '.join(REQUIRED_COLUMNS)}",
            ],
            valid_rows=[],
            total_rows=len(rows),
        )

    data_rows = rows[1:] if options.skip_first_row else rows
    valid_rows: List[CSVDataPoint] = []
    all_errors: List[str] = []

    for row_index, row in enumerate(data_rows):
        if all(not cell.strip() for cell in row):
            continue

        is_valid, errors, data_point = validate_data_point(row, mapping, row_index)
        if is_valid:
            valid_rows.append(data_point)
        else:
            all_errors.extend(errors)

    logger.debug(
        f"Parsed CSV: {len(valid_rows)} valid of {len(data_rows)} rows, {len(all_errors)} errors"
    )

    return ImportValidationResult(
        is_valid=not all_errors,
        errors=all_errors,
        valid_rows=valid_rows,
        total_rows=len(data_rows),
    )


def group_data_points_by_category(
    data_points: Sequence[CSVDataPoint],
) -> Dict[str, List[CSVDataPoint]]:
    groups: Dict[str, List[CSVDataPoint]] = {}
    for data_point in data_points:
        groups.setdefault(data_point.category, []).append(data_point)
    return groups


def generate_chart_names(data_points: Sequence[CSVDataPoint]) -> List[str]:
    categories = dict.fromkeys(data_point.category for data_point in data_points)
    return [f"{category} Data" for category in categories]


def validate_csv_file(
    filename: Optional[str], content_type: Optional[str], size: int
) -> Tuple[bool, Optional[str]]:
    has_valid_type = content_type in VALID_CONTENT_TYPES
    has_valid_extension = bool(filename) and filename.lower().endswith(VALID_EXTENSIONS)

    if not has_valid_type and not has_valid_extension:
        return False, "Please upload a CSV file (.csv or .txt)"

    if size > MAX_FILE_SIZE:
        return False, "File size must be less than 5MB"

    return True, None
