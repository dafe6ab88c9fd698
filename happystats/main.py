from fastapi import FastAPI, File, Form, Header, HTTPException, Query, Response, UploadFile
from fastapi.responses import JSONResponse
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
from happystats.config.database import db_manager
from happystats.common.analytics_models import DateRange
from happystats.common.dates import coerce_datetime
from happystats.common.validation import validate_date_range
from happystats.charts.chart_repository import ChartRepository
from happystats.charts.chart_service import (
    ChartAccessDeniedError,
    ChartNotFoundError,
    ChartService,
    DataPointNotFoundError,
)
from happystats.charts.chart_models import (
    Chart,
    ChartListResponse,
    ChartStatistics,
    ChartTrendResponse,
    CreateChartRequest,
    CreateDataPointRequest,
    DataPoint,
    DataPointListResponse,
    DataPointResponse,
    UpdateChartRequest,
    UpdateDataPointRequest,
)
from happystats.csv_import.csv_import_service import (
    CSVImportService,
    CSVImportValidationError,
)
from happystats.csv_import.csv_import_models import (
    CSVImportRequest,
    CSVImportResponse,
    CSVPreviewResponse,
    CSVValidateRequest,
)
from happystats.csv_export.csv_export_service import (
    CSVExportService,
    CSVExportValidationError,
)
from happystats.csv_export.csv_export_models import (
    CSVExport,
    CSVExportOptions,
    DateFormat,
    ExportStatistics,
)
from happystats.subscriptions.subscription_repository import SubscriptionRepository
from happystats.subscriptions.subscription_service import (
    ChartLimitReachedError,
    SubscriptionService,
    UserNotFoundError,
)
from happystats.subscriptions.subscription_models import (
    SubscriptionTier,
    SubscriptionUsage,
)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

chart_repository = ChartRepository()
subscription_repository = SubscriptionRepository()
subscription_service = SubscriptionService(subscription_repository)
chart_service = ChartService(chart_repository, subscription_service)
csv_import_service = CSVImportService(chart_repository, subscription_service)
csv_export_service = CSVExportService(chart_service)

DOMAIN_ERRORS = (
    ChartNotFoundError,
    ChartAccessDeniedError,
    DataPointNotFoundError,
    ChartLimitReachedError,
    UserNotFoundError,
    CSVImportValidationError,
    CSVExportValidationError,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    try:
        db_success = await db_manager.initialize()
        if not db_success:
            logging.error("Failed to initialize database connection pool")
            raise RuntimeError("Database initialization failed")

        if db_manager.config.run_migrations:
            applied = await db_manager.run_migrations()
            logging.info(f"Applied {applied} database migrations")

    except Exception as e:
        logging.error(f"Startup error: {e}")

    yield

    # Shutdown
    try:
        await db_manager.close()
    except Exception as e:
        logging.error(f"Shutdown error: {e}")


app = FastAPI(title="HappyStats Service", version="1.0.0", lifespan=lifespan)


def current_user_id(x_user_id: Optional[str]) -> str:
    # identity comes from the X-User-Id header set by the session layer
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        return str(UUID(x_user_id.strip()))
    except ValueError:
        logging.warning(f"Rejected malformed X-User-Id header: {x_user_id!r}")
        raise HTTPException(status_code=401, detail="Authentication required")


def to_http_exception(error: Exception) -> HTTPException:
    """Translate a domain error into the matching HTTP response"""
    if isinstance(error, (ChartNotFoundError, DataPointNotFoundError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ChartAccessDeniedError):
        return HTTPException(status_code=403, detail="Access denied")
    if isinstance(error, UserNotFoundError):
        return HTTPException(status_code=401, detail="Authentication required")
    if isinstance(error, ChartLimitReachedError):
        return HTTPException(
            status_code=403,
            detail={
                "error": "Chart limit reached",
                "message": str(error),
                "current_count": error.current_count,
                "limit": error.limit,
                "upgrade_required": True,
            },
        )
    if isinstance(error, CSVImportValidationError):
        return HTTPException(
            status_code=400,
            detail={
                "error": error.message,
                "details": error.errors,
                "total_rows": error.total_rows,
                "valid_rows": error.valid_rows,
            },
        )
    if isinstance(error, CSVExportValidationError):
        return HTTPException(
            status_code=400,
            detail={"error": error.message, "details": error.errors},
        )
    return HTTPException(status_code=500, detail="Internal server error")


def parse_date_range(
    start_date: Optional[datetime], end_date: Optional[datetime]
) -> Optional[DateRange]:
    if start_date is None and end_date is None:
        return None

    # compare in naive UTC; query values may mix offsets and no offset
    start_date = coerce_datetime(start_date)
    end_date = coerce_datetime(end_date)

    if start_date is not None and end_date is not None:
        is_valid, error = validate_date_range(start_date, end_date)
        if not is_valid:
            logging.warning(
                f"Invalid date range: start_date {start_date}, end_date {end_date}: {error}"
            )
            raise HTTPException(status_code=400, detail=error)

    return DateRange(start_date=start_date, end_date=end_date)


def csv_response(export: CSVExport) -> Response:
    return Response(
        content=export.content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@app.get("/")
async def root():
    return {"message": "HappyStats Service is running"}


@app.get("/health")
async def health():
    db_healthy = await db_manager.health_check()

    return JSONResponse(
        status_code=200 if db_healthy else 503,
        content={
            "status": "healthy" if db_healthy else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {"database": "healthy" if db_healthy else "unhealthy"},
        },
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


@app.get("/charts", response_model=ChartListResponse)
async def list_charts(
    category: Optional[str] = Query(None, description="Only charts in this category"),
    search: Optional[str] = Query(None, description="Case-insensitive name search"),
    x_user_id: Optional[str] = Header(None),
):
    user_id = current_user_id(x_user_id)
    logging.info(f"Received chart list request for user {user_id}")

    try:
        charts = await chart_service.list_charts(user_id, category, search)
        return ChartListResponse(charts=charts, count=len(charts))

    except Exception as e:
        logging.error(f"Error listing charts for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch charts")


@app.post("/charts", response_model=Chart, status_code=201)
async def create_chart(request: CreateChartRequest, x_user_id: Optional[str] = Header(None)):
    user_id = current_user_id(x_user_id)
    logging.info(f"Received chart creation request for user {user_id}")

    try:
        return await chart_service.create_chart(user_id, request)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error creating chart for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create chart")


@app.get("/charts/categories", response_model=List[str])
async def get_categories(x_user_id: Optional[str] = Header(None)):
    user_id = current_user_id(x_user_id)

    try:
        return await chart_service.get_user_categories(user_id)

    except Exception as e:
        logging.error(f"Error fetching categories for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch categories")


@app.post("/charts/import", response_model=CSVImportResponse, status_code=201)
async def import_csv(request: CSVImportRequest, x_user_id: Optional[str] = Header(None)):
    """
    Create a chart from CSV text.

    The CSV needs columns matching measurement, date, name and category
    (aliases such as value, timestamp, label or type are recognised).
    The import is rejected unless every row is valid.
    """
    user_id = current_user_id(x_user_id)
    logging.info(f"Received CSV import request for user {user_id}")

    try:
        return await csv_import_service.import_csv(
            user_id, request.csv_data, request.chart_name, request.skip_first_row
        )

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error importing CSV for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to import CSV data")


@app.post("/charts/import/upload", response_model=CSVImportResponse, status_code=201)
async def import_csv_upload(
    file: UploadFile = File(..., description="CSV file with measurement, date, name and category columns"),
    chart_name: str = Form(..., min_length=1, max_length=255),
    skip_first_row: bool = Form(True),
    x_user_id: Optional[str] = Header(None),
):
    user_id = current_user_id(x_user_id)
    logging.info(f"Received CSV upload for user {user_id}: {file.filename}")

    try:
        return await csv_import_service.import_csv_file(
            user_id, file, chart_name, skip_first_row
        )

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error uploading CSV for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to import CSV file")


@app.post("/charts/import/validate", response_model=CSVPreviewResponse)
async def validate_csv(request: CSVValidateRequest, x_user_id: Optional[str] = Header(None)):
    """
    Validate CSV text and preview the valid rows without creating a chart.
    """
    current_user_id(x_user_id)

    try:
        return csv_import_service.preview_csv(request.csv_data, request.skip_first_row)

    except Exception as e:
        logging.error(f"Error validating CSV: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to validate CSV data")


@app.get("/charts/export")
async def export_charts(
    category: Optional[str] = Query(None),
    include_headers: bool = Query(True),
    date_format: DateFormat = Query(DateFormat.ISO),
    start_date: Optional[datetime] = Query(None, description="Start date in ISO 8601 format"),
    end_date: Optional[datetime] = Query(None, description="End date in ISO 8601 format"),
    x_user_id: Optional[str] = Header(None),
):
    user_id = current_user_id(x_user_id)
    date_range = parse_date_range(start_date, end_date)
    logging.info(f"Received bulk export request for user {user_id}")

    try:
        export = await csv_export_service.export_charts(
            user_id,
            CSVExportOptions(include_headers=include_headers, date_format=date_format),
            category=category,
            date_range=date_range,
        )
        return csv_response(export)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error exporting charts for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to export charts")


@app.get("/charts/export/statistics", response_model=ExportStatistics)
async def export_statistics(x_user_id: Optional[str] = Header(None)):
    user_id = current_user_id(x_user_id)

    try:
        return await csv_export_service.get_export_statistics(user_id)

    except Exception as e:
        logging.error(f"Error building export statistics for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch export statistics")


@app.get("/charts/{chart_id}", response_model=Chart)
async def get_chart(chart_id: UUID, x_user_id: Optional[str] = Header(None)):
    user_id = current_user_id(x_user_id)

    try:
        return await chart_service.get_chart(str(chart_id), user_id)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error fetching chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch chart")


@app.put("/charts/{chart_id}", response_model=Chart)
async def update_chart(
    chart_id: UUID, request: UpdateChartRequest, x_user_id: Optional[str] = Header(None)
):
    user_id = current_user_id(x_user_id)

    if request.name is None and request.category is None:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        return await chart_service.update_chart(str(chart_id), user_id, request)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error updating chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update chart")


@app.delete("/charts/{chart_id}")
async def delete_chart(chart_id: UUID, x_user_id: Optional[str] = Header(None)):
    user_id = current_user_id(x_user_id)

    try:
        await chart_service.delete_chart(str(chart_id), user_id)
        return {"success": True, "message": "Chart deleted successfully"}

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error deleting chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete chart")


@app.get("/charts/{chart_id}/data-points", response_model=DataPointListResponse)
async def list_data_points(
    chart_id: UUID,
    start_date: Optional[datetime] = Query(None, description="Start date in ISO 8601 format"),
    end_date: Optional[datetime] = Query(None, description="End date in ISO 8601 format"),
    x_user_id: Optional[str] = Header(None),
):
    user_id = current_user_id(x_user_id)
    date_range = parse_date_range(start_date, end_date)

    try:
        data_points = await chart_service.get_data_points(str(chart_id), user_id, date_range)
        return DataPointListResponse(data_points=data_points, count=len(data_points))

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error fetching data points for chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch data points")


@app.post(
    "/charts/{chart_id}/data-points", response_model=DataPointResponse, status_code=201
)
async def create_data_point(
    chart_id: UUID,
    request: CreateDataPointRequest,
    x_user_id: Optional[str] = Header(None),
):
    user_id = current_user_id(x_user_id)
    logging.info(f"Received data point for chart {chart_id} from user {user_id}")

    try:
        return await chart_service.create_data_point(str(chart_id), user_id, request)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error creating data point for chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create data point")


@app.put("/data-points/{data_point_id}", response_model=DataPoint)
async def update_data_point(
    data_point_id: UUID,
    request: UpdateDataPointRequest,
    x_user_id: Optional[str] = Header(None),
):
    user_id = current_user_id(x_user_id)

    if request.measurement is None and request.date is None and request.name is None:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        return await chart_service.update_data_point(str(data_point_id), user_id, request)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error updating data point {data_point_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update data point")


@app.delete("/data-points/{data_point_id}")
async def delete_data_point(data_point_id: UUID, x_user_id: Optional[str] = Header(None)):
    user_id = current_user_id(x_user_id)

    try:
        await chart_service.delete_data_point(str(data_point_id), user_id)
        return {"success": True, "message": "Data point deleted successfully"}

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error deleting data point {data_point_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete data point")


@app.get("/charts/{chart_id}/statistics", response_model=Optional[ChartStatistics])
async def get_chart_statistics(
    chart_id: UUID,
    start_date: Optional[datetime] = Query(None, description="Start date in ISO 8601 format"),
    end_date: Optional[datetime] = Query(None, description="End date in ISO 8601 format"),
    x_user_id: Optional[str] = Header(None),
):
    """
    Summary statistics and trend for a chart, optionally within a date range.
    Returns null when the chart has no data points in range.
    """
    user_id = current_user_id(x_user_id)
    date_range = parse_date_range(start_date, end_date)

    try:
        return await chart_service.get_chart_statistics(str(chart_id), user_id, date_range)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error computing statistics for chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to compute chart statistics")


@app.get("/charts/{chart_id}/trend", response_model=ChartTrendResponse)
async def get_chart_trend(
    chart_id: UUID,
    start_date: Optional[datetime] = Query(None, description="Start date in ISO 8601 format"),
    end_date: Optional[datetime] = Query(None, description="End date in ISO 8601 format"),
    x_user_id: Optional[str] = Header(None),
):
    user_id = current_user_id(x_user_id)
    date_range = parse_date_range(start_date, end_date)

    try:
        return await chart_service.get_chart_trend(str(chart_id), user_id, date_range)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error computing trend for chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to compute chart trend")


@app.get("/charts/{chart_id}/export")
async def export_chart(
    chart_id: UUID,
    include_headers: bool = Query(True),
    date_format: DateFormat = Query(DateFormat.ISO),
    start_date: Optional[datetime] = Query(None, description="Start date in ISO 8601 format"),
    end_date: Optional[datetime] = Query(None, description="End date in ISO 8601 format"),
    x_user_id: Optional[str] = Header(None),
):
    user_id = current_user_id(x_user_id)
    date_range = parse_date_range(start_date, end_date)
    logging.info(f"Received export request for chart {chart_id}")

    try:
        export = await csv_export_service.export_chart(
            str(chart_id),
            user_id,
            CSVExportOptions(include_headers=include_headers, date_format=date_format),
            date_range,
        )
        return csv_response(export)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error exporting chart {chart_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to export chart")


@app.get("/subscriptions/usage", response_model=SubscriptionUsage)
async def get_subscription_usage(x_user_id: Optional[str] = Header(None)):
    user_id = current_user_id(x_user_id)

    try:
        return await subscription_service.get_usage(user_id)

    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        logging.error(f"Error fetching usage for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch subscription info")


@app.get("/subscriptions/tiers", response_model=List[SubscriptionTier])
async def get_subscription_tiers():
    return subscription_service.get_tiers()
