import logging
from typing import Any, List, Sequence

import numpy as np

from happystats.common.analytics_models import TrendCalculation
from happystats.common.dates import record_field

logger = logging.getLogger(__name__)


def calculate_trend_line(data_points: Sequence[Any]) -> TrendCalculation:
    """
    Least-squares line through the measurements of data_points.

    The zero-based position of each point is used as x and its measurement
    as y, so callers should pass points already ordered by date.
    Fewer than two points yields an all-zero result. NaN measurements
    propagate into the result.
    """
    n = len(data_points)
    if n < 2:
        return TrendCalculation(slope=0.0, intercept=0.0, r_squared=0.0)

    y_values = np.asarray(
        [record_field(point, "measurement") for point in data_points], dtype=float
    )
    x_values = np.arange(n, dtype=float)

    x_mean = x_values.mean()
    y_mean = y_values.mean()

    numerator = float(np.sum((x_values - x_mean) * (y_values - y_mean)))
    denominator = float(np.sum((x_values - x_mean) ** 2))

    slope = 0.0 if denominator == 0 else numerator / denominator
    intercept = float(y_mean - slope * x_mean)

    predicted = slope * x_values + intercept
    total_sum_squares = float(np.sum((y_values - y_mean) ** 2))
    residual_sum_squares = float(np.sum((y_values - predicted) ** 2))

    # constant series: rounding in the mean can leave a non-zero total
    if total_sum_squares == 0 or np.ptp(y_values) == 0:
        r_squared = 0.0
    else:
        r_squared = 1 - residual_sum_squares / total_sum_squares

    logger.debug(
        f"Trend over {n} points: slope={slope}, intercept={intercept}, r_squared={r_squared}"
    )

    return TrendCalculation(slope=slope, intercept=intercept, r_squared=r_squared)


def trend_value_at(trend: TrendCalculation, index: int) -> float:
    return trend.slope * index + trend.intercept


def trend_values(trend: TrendCalculation, count: int) -> List[float]:
    return [trend_value_at(trend, index) for index in range(count)]


def describe_trend(trend: TrendCalculation) -> str:
    if trend.slope > 0:
        return "increasing"
    if trend.slope < 0:
        return "decreasing"
    return "stable"
