"""Dynamic batch pricing.

Prices are never stored: every batch list and every checkout recomputes the
effective price from the batch's current occupancy and its distance to
departure.

Rules (tiers summed, then the total capped to +/-20%):

* occupancy >= 85%          -> +15%  "High Demand"
* occupancy >= 70%          -> +8%   "High Demand"
* departs in 0..7 days      -> +10%  "Last Minute"
* departs in more than 30   -> -5%   "Early Bird Offer"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Union

MAX_ADJUSTMENT_PCT = 20

HIGH_OCCUPANCY_PCT = 85
HIGH_OCCUPANCY_SURGE = 15
MEDIUM_OCCUPANCY_PCT = 70
MEDIUM_OCCUPANCY_SURGE = 8

LAST_MINUTE_DAYS = 7
LAST_MINUTE_SURGE = 10
EARLY_BIRD_DAYS = 30
EARLY_BIRD_DISCOUNT = -5


@dataclass(frozen=True)
class PriceBadge:
    label: str
    type: str  # "surge" | "discount"

    def to_dict(self) -> dict:
        return {"label": self.label, "type": self.type}


HIGH_DEMAND = PriceBadge("High Demand", "surge")
LAST_MINUTE = PriceBadge("Last Minute", "surge")
EARLY_BIRD = PriceBadge("Early Bird Offer", "discount")


@dataclass(frozen=True)
class DynamicPriceResult:
    base_price: int
    effective_price: int
    adjustment_percent: int  # positive = surcharge, negative = discount
    badges: List[PriceBadge] = field(default_factory=list)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _to_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def occupancy_percent(batch_size: int, available_seats: int) -> float:
    """Share of the batch already sold; a non-positive size counts as empty."""
    if not batch_size or batch_size <= 0:
        return 0.0
    return (batch_size - available_seats) / batch_size * 100


def days_until(start_date: Union[str, date, datetime, None], today: Optional[date] = None) -> Optional[int]:
    start = _to_date(start_date)
    if start is None:
        return None
    return (start - (today or date.today())).days


def calculate_dynamic_price(
    base_price: int,
    batch_size: int,
    available_seats: int,
    start_date: Union[str, date, datetime, None],
    *,
    today: Optional[date] = None,
) -> DynamicPriceResult:
    """Compute the effective per-seat price of a batch.

    Pure and total: bad sizes fall back to 0% occupancy and an unparseable
    start date simply contributes no date adjustment.
    """
    occupancy = occupancy_percent(batch_size, available_seats)
    days = days_until(start_date, today)

    adjustment = 0
    badges: List[PriceBadge] = []

    if occupancy >= HIGH_OCCUPANCY_PCT:
        adjustment += HIGH_OCCUPANCY_SURGE
        badges.append(HIGH_DEMAND)
    elif occupancy >= MEDIUM_OCCUPANCY_PCT:
        adjustment += MEDIUM_OCCUPANCY_SURGE
        badges.append(HIGH_DEMAND)

    if days is not None:
        if 0 <= days <= LAST_MINUTE_DAYS:
            adjustment += LAST_MINUTE_SURGE
            badges.append(LAST_MINUTE)
        elif days > EARLY_BIRD_DAYS:
            adjustment += EARLY_BIRD_DISCOUNT
            badges.append(EARLY_BIRD)

    adjustment = max(-MAX_ADJUSTMENT_PCT, min(adjustment, MAX_ADJUSTMENT_PCT))

    effective = _round_half_up(Decimal(base_price) * (Decimal(100 + adjustment) / Decimal(100)))

    return DynamicPriceResult(
        base_price=base_price,
        effective_price=effective,
        adjustment_percent=adjustment,
        badges=badges,
    )
