from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from happystats.common.analytics_models import TrendCalculation


class DataPoint(BaseModel):
    id: str
    chart_id: str
    measurement: float
    date: datetime
    name: str
    created_at: Optional[datetime] = None


class Chart(BaseModel):
    id: str
    user_id: str
    name: str
    category: str
    data_points: List[DataPoint] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChartListResponse(BaseModel):
    charts: List[Chart]
    count: int


class CreateChartRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)


class UpdateChartRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)


class CreateDataPointRequest(BaseModel):
    measurement: float = Field(..., allow_inf_nan=False)
    date: datetime
    name: str = Field(..., min_length=1, max_length=255)


class UpdateDataPointRequest(BaseModel):
    measurement: Optional[float] = Field(None, allow_inf_nan=False)
    date: Optional[datetime] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class DataPointListResponse(BaseModel):
    data_points: List[DataPoint]
    count: int


class DataPointResponse(BaseModel):
    data_point: DataPoint
    warning: Optional[str] = None


class ChartDateRange(BaseModel):
    earliest: datetime
    latest: datetime


class ChartStatistics(BaseModel):
    total_data_points: int
    average_value: float
    min_value: float
    max_value: float
    trend: TrendCalculation
    date_range: ChartDateRange


class ChartTrendResponse(BaseModel):
    chart_id: str
    point_count: int
    trend: TrendCalculation
    direction: str
    trend_values: List[float]
