import logging
from typing import List, Optional, Sequence

import numpy as np

from happystats.charts.chart_models import (
    Chart,
    ChartDateRange,
    ChartStatistics,
    ChartTrendResponse,
    CreateChartRequest,
    CreateDataPointRequest,
    DataPoint,
    DataPointResponse,
    UpdateChartRequest,
    UpdateDataPointRequest,
)
from happystats.charts.chart_repository import ChartRepository
from happystats.common.analytics_models import DateRange
from happystats.common.date_range import (
    filter_data_points_by_date_range,
    get_data_point_date_range,
    sort_by_date,
)
from happystats.common.trend import calculate_trend_line, describe_trend, trend_values
from happystats.common.validation import validate_measurement_range
from happystats.subscriptions.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


class ChartNotFoundError(Exception):
    pass


class ChartAccessDeniedError(Exception):
    pass


class DataPointNotFoundError(Exception):
    pass


def compute_chart_statistics(
    data_points: Sequence[DataPoint],
) -> Optional[ChartStatistics]:
    if not data_points:
        return None

    ordered = sort_by_date(data_points)
    measurements = np.asarray([point.measurement for point in ordered], dtype=float)
    earliest, latest = get_data_point_date_range(ordered)

    return ChartStatistics(
        total_data_points=len(ordered),
        average_value=float(measurements.mean()),
        min_value=float(measurements.min()),
        max_value=float(measurements.max()),
        trend=calculate_trend_line(ordered),
        date_range=ChartDateRange(earliest=earliest, latest=latest),
    )


class ChartService:
    def __init__(
        self,
        chart_repository: ChartRepository,
        subscription_service: SubscriptionService,
    ):
        self._repository = chart_repository
        self._subscription_service = subscription_service

    async def list_charts(
        self,
        user_id: str,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Chart]:
        return await self._repository.get_charts_by_user_id(user_id, category, search)

    async def get_chart(self, chart_id: str, user_id: str) -> Chart:
        """Fetch a chart, checking that it belongs to user_id"""
        chart = await self._repository.get_chart_by_id(chart_id)

        if chart is None:
            raise ChartNotFoundError(f"Chart {chart_id} not found")

        if chart.user_id != user_id:
            logger.warning(f"User {user_id} denied access to chart {chart_id}")
            raise ChartAccessDeniedError(f"Access denied to chart {chart_id}")

        return chart

    async def create_chart(self, user_id: str, request: CreateChartRequest) -> Chart:
        await self._subscription_service.ensure_can_create_chart(user_id)

        chart = await self._repository.create_chart(
            user_id, request.name, request.category
        )
        logger.info(f"User {user_id} created chart {chart.id}")
        return chart

    async def update_chart(
        self, chart_id: str, user_id: str, request: UpdateChartRequest
    ) -> Chart:
        await self.get_chart(chart_id, user_id)

        chart = await self._repository.update_chart(
            chart_id, name=request.name, category=request.category
        )
        if chart is None:
            raise ChartNotFoundError(f"Chart {chart_id} not found")
        return chart

    async def delete_chart(self, chart_id: str, user_id: str) -> None:
        await self.get_chart(chart_id, user_id)

        if not await self._repository.delete_chart(chart_id):
            raise ChartNotFoundError(f"Chart {chart_id} not found")
        logger.info(f"User {user_id} deleted chart {chart_id}")

    async def get_data_points(
        self, chart_id: str, user_id: str, date_range: Optional[DateRange] = None
    ) -> List[DataPoint]:
        chart = await self.get_chart(chart_id, user_id)
        return list(filter_data_points_by_date_range(chart.data_points, date_range))

    async def create_data_point(
        self, chart_id: str, user_id: str, request: CreateDataPointRequest
    ) -> DataPointResponse:
        chart = await self.get_chart(chart_id, user_id)

        warning = validate_measurement_range(
            request.measurement, [point.measurement for point in chart.data_points]
        )

        data_point = await self._repository.create_data_point(
            chart_id, request.measurement, request.date, request.name
        )
        return DataPointResponse(data_point=data_point, warning=warning)

    async def _get_owned_data_point(self, data_point_id: str, user_id: str) -> DataPoint:
        data_point = await self._repository.get_data_point_by_id(data_point_id)
        if data_point is None:
            raise DataPointNotFoundError(f"Data point {data_point_id} not found")

        await self.get_chart(data_point.chart_id, user_id)
        return data_point

    async def update_data_point(
        self, data_point_id: str, user_id: str, request: UpdateDataPointRequest
    ) -> DataPoint:
        await self._get_owned_data_point(data_point_id, user_id)

        data_point = await self._repository.update_data_point(
            data_point_id,
            measurement=request.measurement,
            date=request.date,
            name=request.name,
        )
        if data_point is None:
            raise DataPointNotFoundError(f"Data point {data_point_id} not found")
        return data_point

    async def delete_data_point(self, data_point_id: str, user_id: str) -> None:
        await self._get_owned_data_point(data_point_id, user_id)

        if not await self._repository.delete_data_point(data_point_id):
            raise DataPointNotFoundError(f"Data point {data_point_id} not found")

    async def get_chart_statistics(
        self, chart_id: str, user_id: str, date_range: Optional[DateRange] = None
    ) -> Optional[ChartStatistics]:
        data_points = await self.get_data_points(chart_id, user_id, date_range)
        return compute_chart_statistics(data_points)

    async def get_chart_trend(
        self, chart_id: str, user_id: str, date_range: Optional[DateRange] = None
    ) -> ChartTrendResponse:
        data_points = sort_by_date(
            await self.get_data_points(chart_id, user_id, date_range)
        )
        trend = calculate_trend_line(data_points)

        return ChartTrendResponse(
            chart_id=chart_id,
            point_count=len(data_points),
            trend=trend,
            direction=describe_trend(trend),
            trend_values=trend_values(trend, len(data_points)),
        )

    async def get_user_categories(self, user_id: str) -> List[str]:
        return await self._repository.get_user_categories(user_id)
