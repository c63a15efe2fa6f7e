from __future__ import annotations

from decimal import Decimal


DAY_MS = 24 * 60 * 60 * 1000
# a plan month is a flat 30 days
MONTH_MS = 30 * DAY_MS

DEFAULT_PLAN = "1"

# plan code (months) -> price in the checkout currency
PLAN_PRICES: dict[str, Decimal] = {
    "1": Decimal("0.10"),
    "3": Decimal("10.00"),
    "6": Decimal("16.00"),
    "12": Decimal("25.00"),
}


def is_known_plan(plan: str | None) -> bool:
    return plan is not None and str(plan) in PLAN_PRICES


def plan_price(plan: str) -> Decimal:
    return PLAN_PRICES[str(plan)]


def plan_months(plan: str | None) -> int:
    try:
        months = int(str(plan))
    except (TypeError, ValueError):
        return int(DEFAULT_PLAN)
    return months if months > 0 else int(DEFAULT_PLAN)


def resolve_plan(*candidates: str | None) -> str:
    """First known plan among candidates (most specific first), else the default."""
    for candidate in candidates:
        if is_known_plan(candidate):
            return str(candidate)
    return DEFAULT_PLAN


def plan_for_amount(amount: Decimal) -> str | None:
    for plan, price in PLAN_PRICES.items():
        if price == amount:
            return plan
    return None


def initial_expiry(created_at: int, plan: str) -> int:
    return created_at + plan_months(plan) * MONTH_MS


def extended_expiry(*, current_expiry: int | None, now: int, plan: str) -> int:
    # an expired listing extends from now, a live one from its current expiry
    base = max(now, current_expiry or now)
    return base + plan_months(plan) * MONTH_MS
