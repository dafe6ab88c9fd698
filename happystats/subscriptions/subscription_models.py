from typing import Dict, List, Optional
from pydantic import BaseModel


class SubscriptionTier(BaseModel):
    name: str
    display_name: str
    price: float
    currency: str
    interval: Optional[str] = None
    features: List[str]
    chart_limit: Optional[int] = None


class UserSubscription(BaseModel):
    user_id: str
    subscription_tier: str
    subscription_status: str


class SubscriptionUsage(BaseModel):
    tier: SubscriptionTier
    subscription_status: str
    chart_count: int
    chart_limit: Optional[int] = None
    can_create_chart: bool


SUBSCRIPTION_TIERS: Dict[str, SubscriptionTier] = {
    "free": SubscriptionTier(
        name="free",
        display_name="Free",
        price=0,
        currency="eur",
        features=["Up to 3 charts", "Basic support", "Data export", "Mobile app access"],
        chart_limit=3,
    ),
    "monthly": SubscriptionTier(
        name="monthly",
        display_name="Monthly Pro",
        price=9.99,
        currency="eur",
        interval="month",
        features=[
            "Unlimited charts",
            "Priority support",
            "Data import/export",
            "Advanced analytics",
            "Custom categories",
            "Data filtering",
        ],
    ),
    "lifetime": SubscriptionTier(
        name="lifetime",
        display_name="Lifetime Pro",
        price=99.99,
        currency="eur",
        features=[
            "Unlimited charts",
            "Super support",
            "Data import/export",
            "Advanced analytics",
            "Custom categories",
            "Data filtering",
            "All future features",
            "Priority feature requests",
        ],
    ),
}
