import math
from datetime import datetime, timedelta
from typing import Optional, Sequence, Tuple

import numpy as np

from happystats.common.dates import coerce_datetime

MAX_DATE_RANGE = timedelta(days=10 * 365)


def validate_date_range(
    start_date: datetime, end_date: datetime
) -> Tuple[bool, Optional[str]]:
    """Offset-aware bounds are compared in UTC against naive ones"""
    start_date = coerce_datetime(start_date)
    end_date = coerce_datetime(end_date)

    if start_date > end_date:
        return False, "Start date must be before end date"

    if end_date - start_date > MAX_DATE_RANGE:
        return False, "Date range cannot exceed 10 years"

    return True, None


def validate_measurement_range(
    measurement: float,
    existing_measurements: Sequence[float],
    outlier_threshold: float = 3.0,
) -> Optional[str]:
    """
    Warning text when measurement is an outlier against existing values.

    Outliers are never rejected, only flagged. At least three existing
    values are needed before anything is flagged.
    """
    if len(existing_measurements) < 3:
        return None

    values = np.asarray(existing_measurements, dtype=float)
    mean = float(values.mean())
    standard_deviation = float(values.std())

    deviation = abs(measurement - mean)
    if standard_deviation == 0:
        z_score = math.inf if deviation > 0 else 0.0
    else:
        z_score = deviation / standard_deviation

    if z_score > outlier_threshold:
        return (
            f"This value ({measurement:g}) is significantly different from your usual range. "
            "Please verify it's correct."
        )

    return None
