from __future__ import annotations

import uuid
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from happystats.charts.chart_models import Chart, DataPoint
from happystats.charts.chart_service import ChartService
from happystats.common.dates import coerce_datetime
from happystats.csv_export.csv_export_service import CSVExportService
from happystats.csv_import.csv_import_service import CSVImportService
from happystats.subscriptions.subscription_models import UserSubscription
from happystats.subscriptions.subscription_service import SubscriptionService

FREE_USER = "11111111-1111-1111-1111-111111111111"
PRO_USER = "22222222-2222-2222-2222-222222222222"
OTHER_USER = "33333333-3333-3333-3333-333333333333"


class FakeChartRepository:
    """In-memory stand-in for ChartRepository"""

    def __init__(self):
        self.charts: Dict[str, Chart] = {}
        self.data_points: Dict[str, DataPoint] = {}
        self.failing_names: set = set()

    def _points_for(self, chart_id: str) -> List[DataPoint]:
        points = [p for p in self.data_points.values() if p.chart_id == chart_id]
        return sorted(points, key=lambda p: p.date)

    async def create_chart(self, user_id: str, name: str, category: str) -> Chart:
        chart = Chart(
            id=str(uuid.uuid4()),
            user_id=user_id,
            name=name,
            category=category,
            created_at=datetime(2024, 1, 1),
            updated_at=datetime(2024, 1, 1),
        )
        self.charts[chart.id] = chart
        return chart

    async def get_chart_by_id(self, chart_id: str) -> Optional[Chart]:
        chart = self.charts.get(chart_id)
        if chart is None:
            return None
        return chart.model_copy(update={"data_points": self._points_for(chart_id)})

    async def get_charts_by_user_id(self, user_id, category=None, search=None):
        charts = []
        for chart in self.charts.values():
            if chart.user_id != user_id:
                continue
            if category and chart.category != category:
                continue
            if search and search.lower() not in chart.name.lower():
                continue
            charts.append(await self.get_chart_by_id(chart.id))
        return charts

    async def update_chart(self, chart_id, name=None, category=None):
        chart = self.charts.get(chart_id)
        if chart is None:
            return None
        updates = {k: v for k, v in {"name": name, "category": category}.items() if v is not None}
        self.charts[chart_id] = chart.model_copy(update=updates)
        return await self.get_chart_by_id(chart_id)

    async def delete_chart(self, chart_id) -> bool:
        if self.charts.pop(chart_id, None) is None:
            return False
        for point_id in [p.id for p in self._points_for(chart_id)]:
            del self.data_points[point_id]
        return True

    async def get_data_points(self, chart_id):
        return self._points_for(chart_id)

    async def get_data_point_by_id(self, data_point_id):
        return self.data_points.get(data_point_id)

    async def create_data_point(self, chart_id, measurement, date, name) -> DataPoint:
        if name in self.failing_names:
            raise RuntimeError(f"insert failed for {name}")
        data_point = DataPoint(
            id=str(uuid.uuid4()),
            chart_id=chart_id,
            measurement=measurement,
            date=coerce_datetime(date),
            name=name,
        )
        self.data_points[data_point.id] = data_point
        return data_point

    async def update_data_point(self, data_point_id, measurement=None, date=None, name=None):
        data_point = self.data_points.get(data_point_id)
        if data_point is None:
            return None
        updates = {
            k: v
            for k, v in {"measurement": measurement, "date": coerce_datetime(date), "name": name}.items()
            if v is not None
        }
        self.data_points[data_point_id] = data_point.model_copy(update=updates)
        return self.data_points[data_point_id]

    async def delete_data_point(self, data_point_id) -> bool:
        return self.data_points.pop(data_point_id, None) is not None

    async def get_user_categories(self, user_id):
        return sorted({c.category for c in self.charts.values() if c.user_id == user_id})


class FakeSubscriptionRepository:
    """In-memory stand-in for SubscriptionRepository backed by a chart repository"""

    def __init__(self, chart_repository: FakeChartRepository):
        self.chart_repository = chart_repository
        self.users: Dict[str, UserSubscription] = {}

    def add_user(self, user_id: str, tier: str, status: str = "active") -> None:
        self.users[user_id] = UserSubscription(
            user_id=user_id, subscription_tier=tier, subscription_status=status
        )

    async def get_user_subscription(self, user_id):
        return self.users.get(user_id)

    async def get_user_chart_count(self, user_id):
        return sum(1 for c in self.chart_repository.charts.values() if c.user_id == user_id)


@pytest.fixture
def chart_repository():
    return FakeChartRepository()


@pytest.fixture
def subscription_repository(chart_repository):
    repository = FakeSubscriptionRepository(chart_repository)
    repository.add_user(FREE_USER, "free")
    repository.add_user(PRO_USER, "monthly")
    repository.add_user(OTHER_USER, "lifetime")
    return repository


@pytest.fixture
def subscription_service(subscription_repository):
    return SubscriptionService(subscription_repository)


@pytest.fixture
def chart_service(chart_repository, subscription_service):
    return ChartService(chart_repository, subscription_service)


@pytest.fixture
def csv_import_service(chart_repository, subscription_service):
    return CSVImportService(chart_repository, subscription_service)


@pytest.fixture
def csv_export_service(chart_service):
    return CSVExportService(chart_service)
