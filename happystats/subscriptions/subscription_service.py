import logging
from typing import List, Optional
from happystats.subscriptions.subscription_models import (
    SUBSCRIPTION_TIERS,
    SubscriptionTier,
    SubscriptionUsage,
    UserSubscription,
)
from happystats.subscriptions.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)


class UserNotFoundError(Exception):
    pass


class ChartLimitReachedError(Exception):
    def __init__(self, current_count: int, limit: Optional[int]):
        super().__init__(
            "You have reached the maximum number of charts for your subscription tier."
        )
        self.current_count = current_count
        self.limit = limit


def get_subscription_tier(tier_name: Optional[str]) -> SubscriptionTier:
    return SUBSCRIPTION_TIERS.get(tier_name or "free", SUBSCRIPTION_TIERS["free"])


def can_create_chart(tier_name: Optional[str], current_chart_count: int) -> bool:
    tier = get_subscription_tier(tier_name)
    if tier.chart_limit is None:
        return True
    return current_chart_count < tier.chart_limit


class SubscriptionService:

    def __init__(self, subscription_repository: SubscriptionRepository):
        self._repository = subscription_repository

    def get_tiers(self) -> List[SubscriptionTier]:
        return list(SUBSCRIPTION_TIERS.values())

    async def get_user_subscription(self, user_id: str) -> UserSubscription:
        subscription = await self._repository.get_user_subscription(user_id)
        if subscription is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return subscription

    async def get_usage(self, user_id: str) -> SubscriptionUsage:
        try:
            subscription = await self.get_user_subscription(user_id)
            chart_count = await self._repository.get_user_chart_count(user_id)
            tier = get_subscription_tier(subscription.subscription_tier)

            return SubscriptionUsage(
                tier=tier,
                subscription_status=subscription.subscription_status,
                chart_count=chart_count,
                chart_limit=tier.chart_limit,
                can_create_chart=can_create_chart(tier.name, chart_count),
            )
        except UserNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Error fetching subscription usage for user {user_id}: {e}")
            raise

    async def ensure_can_create_chart(self, user_id: str) -> None:
        """
        Raise ChartLimitReachedError when the user's tier allows no more charts.
        """
        usage = await self.get_usage(user_id)
        if not usage.can_create_chart:
            logger.info(
                f"User {user_id} hit chart limit {usage.chart_limit} on tier {usage.tier.name}"
            )
            raise ChartLimitReachedError(usage.chart_count, usage.chart_limit)
