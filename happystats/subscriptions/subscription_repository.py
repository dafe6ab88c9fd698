import logging
from typing import Optional
from happystats.subscriptions.subscription_models import UserSubscription
from happystats.config.database import db_manager

logger = logging.getLogger(__name__)


class SubscriptionRepository:

    async def get_user_subscription(self, user_id: str) -> Optional[UserSubscription]:
        query = """
            SELECT id, subscription_tier, subscription_status
            FROM users
            WHERE id = $1
        """

        try:
            row = await db_manager.fetch_one(query, user_id)
            if row is None:
                return None

            return UserSubscription(
                user_id=str(row["id"]),
                subscription_tier=row["subscription_tier"] or "free",
                subscription_status=row["subscription_status"] or "active",
            )
        except Exception as e:
            logger.error(f"Failed to fetch subscription for user {user_id}: {e}")
            raise

    async def get_user_chart_count(self, user_id: str) -> int:
        try:
            count = await db_manager.fetch_value(
                "SELECT COUNT(*) FROM charts WHERE user_id = $1", user_id
            )
            return int(count or 0)
        except Exception as e:
            logger.error(f"Failed to count charts for user {user_id}: {e}")
            raise
