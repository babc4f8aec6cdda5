"""Subscription plan catalog shared by checkout and profile views."""

from __future__ import annotations

from decimal import Decimal

from shared import config
from shared.models import PlanCatalog, PlanInfo


PLANS: dict[str, dict[str, object]] = {
    "free": {
        "name": "Free",
        "price": None,
        "features": (
            "1 device",
            "Track 3 websites/apps",
            "1-hour fixed lockout",
            "Purchase overrides at $1.99 each",
        ),
    },
    "pro": {
        "name": "Pro",
        "price": Decimal("4.99"),
        "features": (
            "Up to 3 devices",
            "Unlimited time tracking",
            "Custom lockout durations",
            "15 free overrides/month",
            "AI nudges",
            "Sync + basic reports",
        ),
    },
    "elite": {
        "name": "Elite",
        "price": Decimal("11.99"),
        "features": (
            "Up to 10 devices",
            "200 free overrides/month",
            "AI usage insights",
            "Journaling + override justification",
            "90-day encrypted usage history",
            "Smart AI recommendations",
        ),
    },
}

PAID_PLANS = ("pro", "elite")
OVERRIDE_PRICE = Decimal("1.99")
OVERRIDE_PRICE_KEY = "override"
MAX_OVERRIDES_PER_PURCHASE = 100

_PLAN_UPGRADES = {"free": "pro", "pro": "elite"}


def is_valid_plan(plan_id: str | None) -> bool:
    return plan_id in PLANS


def plan_name(plan_id: str | None) -> str:
    plan = PLANS.get(plan_id or "")
    return str(plan["name"]) if plan else "Unknown Plan"


def plan_features(plan_id: str | None) -> list[str]:
    plan = PLANS.get(plan_id or "")
    return list(plan["features"]) if plan else []


def next_plan(current_plan: str | None) -> str | None:
    """Return the plan one tier above `current_plan`, or None at the top."""
    return _PLAN_UPGRADES.get(current_plan or "")


def price_id_for(key: str) -> str | None:
    """Return the Stripe price id for a paid plan or the override product."""
    return config.stripe_price_ids().get(key)


def configured_price_ids() -> list[str]:
    """Return every configured price id, paid plans first, override last."""
    price_ids = config.stripe_price_ids()
    ordered_keys = (*PAID_PLANS, OVERRIDE_PRICE_KEY)
    return [price_ids[key] for key in ordered_keys if price_ids.get(key)]


def plan_catalog() -> PlanCatalog:
    """Return every tier, cheapest first, with its upgrade target."""
    return PlanCatalog(
        plans=[
            PlanInfo(
                id=plan_id,
                name=plan_name(plan_id),
                price=PLANS[plan_id]["price"],
                features=plan_features(plan_id),
                next_plan=next_plan(plan_id),
            )
            for plan_id in PLANS
        ],
        override_price=OVERRIDE_PRICE,
    )
