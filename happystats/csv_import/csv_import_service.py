import logging
from typing import List
from fastapi import UploadFile
from happystats.charts.chart_repository import ChartRepository
from happystats.csv_import.csv_import_models import (
    CategoryBreakdown,
    CSVImportOptions,
    CSVImportResponse,
    CSVPreview,
    CSVPreviewResponse,
    CSVValidationSummary,
    ImportSummary,
)
from happystats.csv_import.csv_parser import (
    MAX_FILE_SIZE,
    group_data_points_by_category,
    parse_and_validate_csv,
    validate_csv_file,
)
from happystats.subscriptions.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

PREVIEW_SAMPLE_SIZE = 5
CATEGORY_SAMPLE_SIZE = 3


class CSVImportValidationError(Exception):
    def __init__(
        self,
        message: str,
        errors: List[str],
        total_rows: int = 0,
        valid_rows: int = 0,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.total_rows = total_rows
        self.valid_rows = valid_rows


class CSVImportService:

    def __init__(
        self,
        chart_repository: ChartRepository,
        subscription_service: SubscriptionService,
    ):
        self._chart_repository = chart_repository
        self._subscription_service = subscription_service

    async def import_csv(
        self,
        user_id: str,
        csv_data: str,
        chart_name: str,
        skip_first_row: bool = True,
    ) -> CSVImportResponse:
        """
        Create a chart from CSV text.

        The whole import is rejected unless every row validates. Rows are
        grouped by category and only the first category seen is imported;
        the others are reported back as skipped.
        """
        await self._subscription_service.ensure_can_create_chart(user_id)

        result = parse_and_validate_csv(
            csv_data, CSVImportOptions(skip_first_row=skip_first_row)
        )

        if not result.is_valid:
            raise CSVImportValidationError(
                "CSV validation failed",
                result.errors,
                total_rows=result.total_rows,
                valid_rows=len(result.valid_rows),
            )

        if not result.valid_rows:
            raise CSVImportValidationError(
                "No valid data found in CSV",
                ["CSV contains no valid data rows"],
                total_rows=result.total_rows,
            )

        category_groups = group_data_points_by_category(result.valid_rows)
        categories = list(category_groups)
        primary_category = categories[0]

        chart = await self._chart_repository.create_chart(
            user_id, chart_name, primary_category
        )

        created_data_points = []
        for csv_data_point in category_groups[primary_category]:
            try:
                data_point = await self._chart_repository.create_data_point(
                    chart.id,
                    csv_data_point.measurement,
                    csv_data_point.date,
                    csv_data_point.name,
                )
                created_data_points.append(data_point)
            except Exception as e:
                logger.error(f"Error creating data point for chart {chart.id}: {e}")

        chart = chart.model_copy(update={"data_points": created_data_points})

        logger.info(
            f"Imported {len(created_data_points)} data points into chart {chart.id} for user {user_id}"
        )

        warnings = []
        if len(categories) > 1:
            warnings.append(
                f'Found {len(categories)} categories. Only "{primary_category}" was imported. '
                f"Other categories: {', '.join(categories[1:])}"
            )

        return CSVImportResponse(
            message="CSV imported successfully",
            chart=chart,
            import_summary=ImportSummary(
                total_rows_processed=result.total_rows,
                valid_rows_found=len(result.valid_rows),
                data_points_created=len(created_data_points),
                categories_found=categories,
                primary_category=primary_category,
                skipped_categories=categories[1:],
            ),
            warnings=warnings,
        )

    async def import_csv_file(
        self,
        user_id: str,
        file: UploadFile,
        chart_name: str,
        skip_first_row: bool = True,
    ) -> CSVImportResponse:
        # at most one byte past the size limit
        content = await file.read(MAX_FILE_SIZE + 1)

        is_valid, error = validate_csv_file(
            file.filename, file.content_type, len(content)
        )
        if not is_valid:
            raise CSVImportValidationError("Invalid CSV file", [error])

        try:
            csv_data = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise CSVImportValidationError(
                "Invalid CSV file",
                [
                    "File contains invalid characters. Please ensure the file is saved as UTF-8."
                ],
            )

        return await self.import_csv(user_id, csv_data, chart_name, skip_first_row)

    def preview_csv(
        self, csv_data: str, skip_first_row: bool = True
    ) -> CSVPreviewResponse:
        """
        Validate CSV text without creating anything, with a preview of the valid rows.
        """
        result = parse_and_validate_csv(
            csv_data, CSVImportOptions(skip_first_row=skip_first_row)
        )
        category_groups = group_data_points_by_category(result.valid_rows)

        return CSVPreviewResponse(
            validation=CSVValidationSummary(
                is_valid=result.is_valid,
                errors=result.errors,
                total_rows=result.total_rows,
                valid_rows=len(result.valid_rows),
            ),
            preview=CSVPreview(
                categories=list(category_groups),
                sample_data=result.valid_rows[:PREVIEW_SAMPLE_SIZE],
                category_breakdown=[
                    CategoryBreakdown(
                        category=category,
                        count=len(points),
                        sample_points=points[:CATEGORY_SAMPLE_SIZE],
                    )
                    for category, points in category_groups.items()
                ],
            ),
        )
