"""
Subscription plan and one-time product catalog.

Amounts, trial lengths and display copy live here; the Stripe price ids
come from settings.STRIPE_PRICE_IDS so test and live mode can differ per
environment. The catalog is rebuilt on every call, which keeps
``override_settings`` working in tests.

Price id keys in STRIPE_PRICE_IDS:
    <plan>_monthly, <plan>_yearly   for starter, pro, enterprise
    <product>                       for credits_100, credits_500, credits_1000

Usage:
    from billing.plans import get_plan_by_price_id, format_price

    plan = get_plan_by_price_id(subscription.stripe_price_id)
    if plan:
        label = f"{plan.name} ({format_price(plan.monthly.amount)}/month)"
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

from django.conf import settings

CHECKOUT_URLS = {
    "success_path": "/checkout/success?session_id={CHECKOUT_SESSION_ID}",
    "cancel_path": "/checkout/cancel",
    "billing_path": "/billing",
}

PORTAL_RETURN_PATH = "/billing"

MONTH = "month"
YEAR = "year"


@dataclass(frozen=True)
class PriceConfig:
    price_id: str
    amount: int
    currency: str
    interval: str
    trial_days: int = 0


@dataclass(frozen=True)
class PlanConfig:
    id: str
    name: str
    description: str
    features: list[str] = field(default_factory=list)
    monthly: PriceConfig | None = None
    yearly: PriceConfig | None = None
    is_free: bool = False
    order: int = 0

    def price_for(self, price_id: str) -> PriceConfig | None:
        for price in (self.monthly, self.yearly):
            if price is not None and price.price_id == price_id:
                return price
        return None

    def to_dict(self) -> dict[str, Any]:
        """Public plan fields, without prices."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "features": list(self.features),
            "is_free": self.is_free,
            "order": self.order,
        }


@dataclass(frozen=True)
class ProductConfig:
    id: str
    price_id: str
    name: str
    description: str
    amount: int
    currency: str = "usd"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _price_id(key: str) -> str:
    price_ids = getattr(settings, "STRIPE_PRICE_IDS", None) or {}
    return price_ids.get(key) or f"price_{key}_REPLACE_ME"


def _prices(plan_id: str, monthly: int, yearly: int, trial_days: int) -> dict[str, PriceConfig]:
    return {
        "monthly": PriceConfig(_price_id(f"{plan_id}_monthly"), monthly, "usd", MONTH, trial_days),
        "yearly": PriceConfig(_price_id(f"{plan_id}_yearly"), yearly, "usd", YEAR, trial_days),
    }


def get_subscription_plans() -> list[PlanConfig]:
    """All plans, cheapest first."""
    plans = [
        PlanConfig(
            id="free",
            name="Free",
            description="For personal projects and exploration",
            features=["Basic features", "Community support", "Limited API calls"],
            is_free=True,
            order=0,
        ),
        PlanConfig(
            id="starter",
            name="Starter",
            description="For small teams getting started",
            features=[
                "All Free features",
                "Priority support",
                "10,000 API calls/month",
                "Basic analytics",
            ],
            order=1,
            **_prices("starter", monthly=999, yearly=9990, trial_days=14),
        ),
        PlanConfig(
            id="pro",
            name="Pro",
            description="For growing teams with advanced needs",
            features=[
                "All Starter features",
                "24/7 support",
                "100,000 API calls/month",
                "Advanced analytics",
                "Custom integrations",
            ],
            order=2,
            **_prices("pro", monthly=2999, yearly=29990, trial_days=14),
        ),
        PlanConfig(
            id="enterprise",
            name="Enterprise",
            description="For large organizations with custom requirements",
            features=[
                "All Pro features",
                "Dedicated support",
                "Unlimited API calls",
                "Custom SLA",
                "SSO & advanced security",
                "Custom contracts",
            ],
            order=3,
            **_prices("enterprise", monthly=9999, yearly=99990, trial_days=0),
        ),
    ]
    return sorted(plans, key=lambda plan: plan.order)


def get_one_time_products() -> list[ProductConfig]:
    return [
        ProductConfig(
            id="credits_100",
            price_id=_price_id("credits_100"),
            name="100 Credits",
            description="One-time purchase of 100 credits",
            amount=999,
        ),
        ProductConfig(
            id="credits_500",
            price_id=_price_id("credits_500"),
            name="500 Credits",
            description="One-time purchase of 500 credits",
            amount=3999,
        ),
        ProductConfig(
            id="credits_1000",
            price_id=_price_id("credits_1000"),
            name="1000 Credits",
            description="One-time purchase of 1000 credits",
            amount=6999,
        ),
    ]


def get_plan_by_price_id(price_id: str | None) -> PlanConfig | None:
    if not price_id:
        return None
    for plan in get_subscription_plans():
        if plan.price_for(price_id):
            return plan
    return None


def get_price_config(price_id: str | None) -> PriceConfig | None:
    """Monthly or yearly price config matching ``price_id``."""
    plan = get_plan_by_price_id(price_id)
    return plan.price_for(price_id) if plan else None


def get_product_by_price_id(price_id: str | None) -> ProductConfig | None:
    if not price_id:
        return None
    for product in get_one_time_products():
        if product.price_id == price_id:
            return product
    return None


def format_price(amount: int, currency: str = "usd") -> str:
    """
    Format an amount in cents for display.

    Example:
        >>> format_price(2999)
        '$29.99'
        >>> format_price(1000, "eur")
        '10.00 EUR'
    """
    value = (Decimal(amount) / 100).quantize(Decimal("0.01"))
    if currency.lower() == "usd":
        return f"${value:,}"
    return f"{value:,} {currency.upper()}"
