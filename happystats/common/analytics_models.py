from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class TrendCalculation(BaseModel):
    slope: float
    intercept: float
    r_squared: float


class DateRange(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def is_unbounded(self) -> bool:
        return self.start_date is None and self.end_date is None
