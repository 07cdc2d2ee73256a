"""Slot pricing with proration for slots that have already started, plus day and month rates."""
import math
from datetime import datetime
from decimal import Decimal, ROUND_CEILING
from typing import Iterable

from parkpass.domain.exceptions import InvalidSelection

HOUR_MINUTES = 60
MIN_BOOKABLE_MINUTES = 30
HOURS_PER_DAY = 24
DAYS_PER_MONTH = 30

_HALF = Decimal("0.5")


def remaining_minutes(slot_end: datetime, now: datetime, slot_minutes: int = HOUR_MINUTES) -> int:
    """Whole minutes left until ``slot_end``, capped at the slot width and floored at zero."""
    left = math.floor((slot_end - now).total_seconds() / 60)
    return max(0, min(slot_minutes, left))


def ceil_money(amount: Decimal) -> Decimal:
    return amount.to_integral_value(rounding=ROUND_CEILING)


def prorated_slot_price(price, remaining: int) -> Decimal:
    """Price of one hourly slot given the minutes left in it.

    A full hour costs ``price``. Between 30 and 59 minutes the driver pays half
    the price plus the elapsed-proportional share of the other half, rounded up
    to a whole unit. Under 30 minutes the slot cannot be sold.
    """
    price = Decimal(price)
    if remaining >= HOUR_MINUTES:
        return price
    if remaining >= MIN_BOOKABLE_MINUTES:
        half_price = price * _HALF
        extra = Decimal(remaining - MIN_BOOKABLE_MINUTES) / Decimal(MIN_BOOKABLE_MINUTES) * half_price
        return ceil_money(half_price + extra)
    raise InvalidSelection(f"Only {remaining} minutes left in this slot, at least {MIN_BOOKABLE_MINUTES} are required")


def total_cost(slot_prices: Iterable[Decimal]) -> Decimal:
    return ceil_money(sum((Decimal(p) for p in slot_prices), Decimal("0")))


def daily_rate(hourly_price, daily_price=None) -> Decimal:
    """The spot's day price, or 24 hours at the hourly price when none is set."""
    if daily_price is not None:
        return Decimal(daily_price)
    return Decimal(hourly_price) * HOURS_PER_DAY


def monthly_rate(hourly_price, daily_price=None, monthly_price=None) -> Decimal:
    """The spot's month price, or 30 days at the day rate when none is set."""
    if monthly_price is not None:
        return Decimal(monthly_price)
    return daily_rate(hourly_price, daily_price) * DAYS_PER_MONTH


def range_cost(rate, units: int) -> Decimal:
    if units < 1:
        raise InvalidSelection("A booking must cover at least one day or month")
    return ceil_money(Decimal(rate) * units)
