import logging
from typing import List, Optional

from happystats.charts.chart_models import Chart
from happystats.charts.chart_service import ChartService
from happystats.common.analytics_models import DateRange
from happystats.common.date_range import filter_data_points_by_date_range
from happystats.csv_export.csv_export_models import (
    CSVExport,
    CSVExportOptions,
    ExportStatistics,
)
from happystats.csv_export.csv_formatter import (
    chart_to_csv,
    charts_to_csv,
    generate_csv_filename,
    get_export_statistics,
    validate_chart_for_export,
)

logger = logging.getLogger(__name__)


class CSVExportValidationError(Exception):
    def __init__(self, message: str, errors: List[str]):
        super().__init__(message)
        self.message = message
        self.errors = errors


def _restrict_to_range(chart: Chart, date_range: Optional[DateRange]) -> Chart:
    return chart.model_copy(
        update={
            "data_points": list(
                filter_data_points_by_date_range(chart.data_points, date_range)
            )
        }
    )


class CSVExportService:

    def __init__(self, chart_service: ChartService):
        self._chart_service = chart_service

    async def export_chart(
        self,
        chart_id: str,
        user_id: str,
        options: CSVExportOptions,
        date_range: Optional[DateRange] = None,
    ) -> CSVExport:
        """
        Export one of the user's charts as CSV text.

        Charts that fail validate_chart_for_export, including charts with no
        data points, are rejected before the date range is applied.
        """
        chart = await self._chart_service.get_chart(chart_id, user_id)

        is_valid, errors = validate_chart_for_export(chart)
        if not is_valid:
            logger.info(f"Export of chart {chart_id} rejected: {errors}")
            raise CSVExportValidationError("Chart cannot be exported", errors)

        chart = _restrict_to_range(chart, date_range)

        content = chart_to_csv(chart, options)
        logger.info(
            f"Exported chart {chart_id} with {len(chart.data_points)} data points"
        )

        return CSVExport(
            filename=generate_csv_filename(chart),
            content=content,
            row_count=len(chart.data_points),
        )

    async def export_charts(
        self,
        user_id: str,
        options: CSVExportOptions,
        category: Optional[str] = None,
        date_range: Optional[DateRange] = None,
    ) -> CSVExport:
        """
        Export all of the user's charts, optionally of one category, as one CSV.

        Charts that fail validate_chart_for_export are left out; if none
        remain the export is rejected.
        """
        exportable = []
        for chart in await self._chart_service.list_charts(user_id, category=category):
            is_valid, errors = validate_chart_for_export(chart)
            if is_valid:
                exportable.append(chart)
            else:
                logger.info(f"Skipping chart {chart.id} in bulk export: {errors}")

        if not exportable:
            raise CSVExportValidationError(
                "No valid charts available for export",
                ["Charts must have data points to be exported."],
            )

        charts = [_restrict_to_range(chart, date_range) for chart in exportable]

        row_count = sum(len(chart.data_points) for chart in charts)
        logger.info(
            f"Exported {len(charts)} charts with {row_count} data points for user {user_id}"
        )

        return CSVExport(
            filename=generate_csv_filename(charts),
            content=charts_to_csv(charts, options),
            row_count=row_count,
        )

    async def get_export_statistics(self, user_id: str) -> ExportStatistics:
        charts = await self._chart_service.list_charts(user_id)
        return get_export_statistics(charts)
