import logging
from datetime import datetime
from typing import Dict, List, Optional
from happystats.charts.chart_models import Chart, DataPoint
from happystats.common.dates import coerce_datetime
from happystats.config.database import db_manager

logger = logging.getLogger(__name__)


def _chart_from_row(row, data_points: Optional[List[DataPoint]] = None) -> Chart:
    return Chart(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        name=row["name"],
        category=row["category"],
        data_points=data_points or [],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _data_point_from_row(row) -> DataPoint:
    return DataPoint(
        id=str(row["id"]),
        chart_id=str(row["chart_id"]),
        measurement=float(row["measurement"]),
        date=row["date"],
        name=row["name"],
        created_at=row["created_at"],
    )


def _command_row_count(status: str) -> int:
    # asyncpg returns e.g. "DELETE 1" / "UPDATE 0"
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0


class ChartRepository:
    def __init__(self):
        self.data_points_query = """
            SELECT id, chart_id, measurement, date, name, created_at
            FROM data_points
            WHERE chart_id = $1
            ORDER BY date ASC
        """

    async def create_chart(self, user_id: str, name: str, category: str) -> Chart:
        query = """
            INSERT INTO charts (user_id, name, category)
            VALUES ($1, $2, $3)
            RETURNING *
        """

        try:
            row = await db_manager.fetch_one(query, user_id, name, category)
            logger.info(f"Created chart {row['id']} for user {user_id}")
            return _chart_from_row(row)
        except Exception as e:
            logger.error(f"Failed to create chart for user {user_id}: {e}")
            raise

    async def get_chart_by_id(self, chart_id: str) -> Optional[Chart]:
        """
        Fetch a chart together with its data points ordered by date.
        """
        try:
            row = await db_manager.fetch_one(
                "SELECT * FROM charts WHERE id = $1", chart_id
            )
            if row is None:
                return None

            data_points = await self.get_data_points(chart_id)
            return _chart_from_row(row, data_points)
        except Exception as e:
            logger.error(f"Failed to fetch chart {chart_id}: {e}")
            raise

    async def get_charts_by_user_id(
        self,
        user_id: str,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Chart]:
        """
        Fetch a user's charts, most recently updated first, with their data points.
        """
        query = "SELECT * FROM charts WHERE user_id = $1"
        params: list = [user_id]

        if category:
            params.append(category)
            query += f" AND category = ${len(params)}"

        if search:
            params.append(f"%{search}%")
            query += f" AND name ILIKE ${len(params)}"

        query += " ORDER BY updated_at DESC"

        try:
            rows = await db_manager.execute(query, *params)
            if not rows:
                return []

            chart_ids = [row["id"] for row in rows]
            point_rows = await db_manager.execute(
                """
                SELECT id, chart_id, measurement, date, name, created_at
                FROM data_points
                WHERE chart_id = ANY($1::uuid[])
                ORDER BY date ASC
                """,
                chart_ids,
            )

            points_by_chart: Dict[str, List[DataPoint]] = {}
            for point_row in point_rows:
                data_point = _data_point_from_row(point_row)
                points_by_chart.setdefault(data_point.chart_id, []).append(data_point)

            return [
                _chart_from_row(row, points_by_chart.get(str(row["id"]), []))
                for row in rows
            ]
        except Exception as e:
            logger.error(f"Failed to fetch charts for user {user_id}: {e}")
            raise

    async def update_chart(
        self,
        chart_id: str,
        name: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Optional[Chart]:
        fields = {"name": name, "category": category}
        updates = {field: value for field, value in fields.items() if value is not None}
        if not updates:
            raise ValueError("No fields to update")

        set_clause = ", ".join(
            f"{field} = ${index}" for index, field in enumerate(updates, start=2)
        )
        query = f"UPDATE charts SET {set_clause} WHERE id = $1 RETURNING *"

        try:
            row = await db_manager.fetch_one(query, chart_id, *updates.values())
            if row is None:
                return None

            data_points = await self.get_data_points(chart_id)
            return _chart_from_row(row, data_points)
        except Exception as e:
            logger.error(f"Failed to update chart {chart_id}: {e}")
            raise

    async def delete_chart(self, chart_id: str) -> bool:
        try:
            status = await db_manager.execute_command(
                "DELETE FROM charts WHERE id = $1", chart_id
            )
            return _command_row_count(status) > 0
        except Exception as e:
            logger.error(f"Failed to delete chart {chart_id}: {e}")
            raise

    async def get_data_points(self, chart_id: str) -> List[DataPoint]:
        try:
            rows = await db_manager.execute(self.data_points_query, chart_id)
            return [_data_point_from_row(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to fetch data points for chart {chart_id}: {e}")
            raise

    async def get_data_point_by_id(self, data_point_id: str) -> Optional[DataPoint]:
        try:
            row = await db_manager.fetch_one(
                "SELECT * FROM data_points WHERE id = $1", data_point_id
            )
            return _data_point_from_row(row) if row is not None else None
        except Exception as e:
            logger.error(f"Failed to fetch data point {data_point_id}: {e}")
            raise

    async def create_data_point(
        self, chart_id: str, measurement: float, date: datetime, name: str
    ) -> DataPoint:
        query = """
            INSERT INTO data_points (chart_id, measurement, date, name)
            VALUES ($1, $2, $3, $4)
            RETURNING *
        """

        try:
            row = await db_manager.fetch_one(
                query, chart_id, measurement, coerce_datetime(date), name
            )
            return _data_point_from_row(row)
        except Exception as e:
            logger.error(f"Failed to create data point for chart {chart_id}: {e}")
            raise

    async def update_data_point(
        self,
        data_point_id: str,
        measurement: Optional[float] = None,
        date: Optional[datetime] = None,
        name: Optional[str] = None,
    ) -> Optional[DataPoint]:
        fields = {
            "measurement": measurement,
            "date": coerce_datetime(date),
            "name": name,
        }
        updates = {field: value for field, value in fields.items() if value is not None}
        if not updates:
            raise ValueError("No fields to update")

        set_clause = ", ".join(
            f"{field} = ${index}" for index, field in enumerate(updates, start=2)
        )
        query = f"UPDATE data_points SET {set_clause} WHERE id = $1 RETURNING *"

        try:
            row = await db_manager.fetch_one(query, data_point_id, *updates.values())
            return _data_point_from_row(row) if row is not None else None
        except Exception as e:
            logger.error(f"Failed to update data point {data_point_id}: {e}")
            raise

    async def delete_data_point(self, data_point_id: str) -> bool:
        try:
            status = await db_manager.execute_command(
                "DELETE FROM data_points WHERE id = $1", data_point_id
            )
            return _command_row_count(status) > 0
        except Exception as e:
            logger.error(f"Failed to delete data point {data_point_id}: {e}")
            raise

    async def get_user_categories(self, user_id: str) -> List[str]:
        query = """
            SELECT DISTINCT category
            FROM charts
            WHERE user_id = $1
            ORDER BY category
        """

        try:
            rows = await db_manager.execute(query, user_id)
            return [row["category"] for row in rows]
        except Exception as e:
            logger.error(f"Failed to fetch categories for user {user_id}: {e}")
            raise
