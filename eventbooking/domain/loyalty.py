"""
Loyalty ledger: tier, discount and points arithmetic.

Tiers are always derived from the point total and never stored:

    Points          Tier        Discount
    0 - 999         Standard    0%
    1000 - 4999     Bronze      5%
    5000 - 14999    Silver      10%
    15000 - 49999   Gold        15%
    50000+          Elite       20%

A booking earns ten points per currency unit actually paid, i.e. after the
loyalty discount, truncated. Money math stays in Decimal end to end.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Union

STANDARD = "Standard"
BRONZE = "Bronze"
SILVER = "Silver"
GOLD = "Gold"
ELITE = "Elite"

# (minimum points, tier, discount), highest threshold first
TIERS = (
    (50_000, ELITE, Decimal("0.20")),
    (15_000, GOLD, Decimal("0.15")),
    (5_000, SILVER, Decimal("0.10")),
    (1_000, BRONZE, Decimal("0.05")),
    (0, STANDARD, Decimal("0.00")),
)

POINTS_PER_UNIT = 10

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class LoyaltyStatus:
    tier: str
    discount: Decimal


def loyalty_status(points: int) -> LoyaltyStatus:
    for threshold, tier, discount in TIERS:
        if points >= threshold:
            return LoyaltyStatus(tier=tier, discount=discount)
    return LoyaltyStatus(tier=STANDARD, discount=Decimal("0.00"))


def loyalty_tier(points: int) -> str:
    return loyalty_status(points).tier


def loyalty_discount(points: int) -> Decimal:
    return loyalty_status(points).discount


def earn(points: int, delta: int) -> int:
    if delta < 0:
        raise ValueError(f"earned points must be non-negative, got {delta}")
    return points + delta


def deduct(points: int, delta: int) -> int:
    """Remove points, clamping the balance at zero."""
    return max(0, points - delta)


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 49.99 as 49.99 instead of its binary float expansion
    return Decimal(str(value))


def points_for_booking(price: Number, discount: Number) -> int:
    """Points for paying `price` with `discount` applied, e.g. (49.99, 0.10) -> 449."""
    paid = _to_decimal(price) * (Decimal(1) - _to_decimal(discount))
    return int((paid * POINTS_PER_UNIT).to_integral_value(rounding=ROUND_DOWN))
