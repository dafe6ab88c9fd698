from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel


class DateFormat(str, Enum):
    ISO = "ISO"
    US = "US"
    EU = "EU"


class CSVExportOptions(BaseModel):
    include_headers: bool = True
    date_format: DateFormat = DateFormat.ISO


class CSVExport(BaseModel):
    filename: str
    content: str
    row_count: int


class ExportStatistics(BaseModel):
    total_charts: int
    total_data_points: int
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None
    categories: List[str]
