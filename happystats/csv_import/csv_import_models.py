from datetime import datetime
from typing import List
from pydantic import BaseModel, Field

from happystats.charts.chart_models import Chart


class CSVDataPoint(BaseModel):
    measurement: float
    date: datetime
    name: str
    category: str


class CSVImportOptions(BaseModel):
    skip_first_row: bool = True


class ImportValidationResult(BaseModel):
    is_valid: bool
    errors: List[str]
    valid_rows: List[CSVDataPoint]
    total_rows: int


class CSVImportRequest(BaseModel):
    csv_data: str = Field(..., min_length=1)
    chart_name: str = Field(..., min_length=1, max_length=255)
    skip_first_row: bool = True


class CSVValidateRequest(BaseModel):
    csv_data: str = Field(..., min_length=1)
    skip_first_row: bool = True


class ImportSummary(BaseModel):
    total_rows_processed: int
    valid_rows_found: int
    data_points_created: int
    categories_found: List[str]
    primary_category: str
    skipped_categories: List[str]


class CSVImportResponse(BaseModel):
    message: str
    chart: Chart
    import_summary: ImportSummary
    warnings: List[str] = []


class CSVValidationSummary(BaseModel):
    is_valid: bool
    errors: List[str]
    total_rows: int
    valid_rows: int


class CategoryBreakdown(BaseModel):
    category: str
    count: int
    sample_points: List[CSVDataPoint]


class CSVPreview(BaseModel):
    categories: List[str]
    sample_data: List[CSVDataPoint]
    category_breakdown: List[CategoryBreakdown]


class CSVPreviewResponse(BaseModel):
    validation: CSVValidationSummary
    preview: CSVPreview
