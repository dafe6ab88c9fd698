import asyncio

import pytest

from happystats.subscriptions.subscription_models import SUBSCRIPTION_TIERS
from happystats.subscriptions.subscription_service import (
    ChartLimitReachedError,
    UserNotFoundError,
    can_create_chart,
    get_subscription_tier,
)

FREE_USER = "11111111-1111-1111-1111-111111111111"
PRO_USER = "22222222-2222-2222-2222-222222222222"
OTHER_USER = "33333333-3333-3333-3333-333333333333"


def test_tiers():
    assert list(SUBSCRIPTION_TIERS) == ["free", "monthly", "lifetime"]
    assert SUBSCRIPTION_TIERS["free"].chart_limit == 3
    assert SUBSCRIPTION_TIERS["monthly"].chart_limit is None
    assert SUBSCRIPTION_TIERS["monthly"].interval == "month"
    assert SUBSCRIPTION_TIERS["lifetime"].price == 99.99


def test_unknown_tier_falls_back_to_free():
    assert get_subscription_tier("platinum").name == "free"
    assert get_subscription_tier(None).name == "free"


@pytest.mark.parametrize(
    "tier, count, allowed",
    [("free", 0, True), ("free", 2, True), ("free", 3, False), ("free", 10, False),
     ("monthly", 500, True), ("lifetime", 10_000, True), ("unknown", 3, False)],
)
def test_can_create_chart(tier, count, allowed):
    assert can_create_chart(tier, count) is allowed


def test_usage(subscription_service, chart_repository):
    asyncio.run(chart_repository.create_chart(FREE_USER, "One", "A"))

    usage = asyncio.run(subscription_service.get_usage(FREE_USER))

    assert usage.tier.name == "free"
    assert usage.subscription_status == "active"
    assert usage.chart_count == 1
    assert usage.chart_limit == 3
    assert usage.can_create_chart is True

    pro_usage = asyncio.run(subscription_service.get_usage(OTHER_USER))
    assert pro_usage.tier.name == "lifetime"
    assert pro_usage.chart_limit is None


def test_ensure_can_create_chart(subscription_service, chart_repository):
    async def scenario():
        for index in range(3):
            await subscription_service.ensure_can_create_chart(FREE_USER)
            await chart_repository.create_chart(FREE_USER, f"Chart {index}", "A")
        await subscription_service.ensure_can_create_chart(FREE_USER)

    with pytest.raises(ChartLimitReachedError) as exc_info:
        asyncio.run(scenario())

    assert (exc_info.value.current_count, exc_info.value.limit) == (3, 3)
    assert str(exc_info.value) == (
        "You have reached the maximum number of charts for your subscription tier."
    )


def test_unknown_user(subscription_service):
    with pytest.raises(UserNotFoundError):
        asyncio.run(subscription_service.get_usage("nobody"))

    assert len(subscription_service.get_tiers()) == 3
