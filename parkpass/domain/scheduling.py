"""Operating hours, slot generation and per-slot availability for one spot and date.

Everything here is pure: the caller injects ``now`` and the timezone, so the
same inputs always classify the same way.
"""
import calendar
import json
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from loguru import logger

from parkpass.domain.common import ALWAYS_OPEN, SlotStatus, LIVE_STATUSES
from parkpass.domain.exceptions import CapacityConflict, InvalidSelection
from parkpass.domain.pricing import HOUR_MINUTES, MIN_BOOKABLE_MINUTES, prorated_slot_price, remaining_minutes

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
DEFAULT_OPEN = "09:00"
DEFAULT_CLOSE = "17:00"
MIDNIGHT = "00:00"
END_OF_DAY = "24:00"
MAX_MONTHS = 12
MAX_RANGE_DAYS = 366


@dataclass(frozen=True)
class DayWindow:
    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    is_24_hours: bool = False


CLOSED = DayWindow(is_open=False)
ALL_DAY = DayWindow(is_open=True, open_time=MIDNIGHT, close_time=END_OF_DAY, is_24_hours=True)


@dataclass(frozen=True)
class TimeSlot:
    start: str
    end: str


@dataclass(frozen=True)
class SlotAvailability:
    start: str
    end: str
    starts_at: datetime
    ends_at: datetime
    status: SlotStatus
    remaining_minutes: int
    price: Optional[Decimal]
    blocked: bool = False

    @property
    def is_selectable(self) -> bool:
        return self.status == SlotStatus.AVAILABLE


def parse_hhmm(value: str) -> int:
    """Minutes since midnight for ``HH:MM``; ``24:00`` is the end of the day."""
    try:
        hours, minutes = (int(part) for part in value.strip().split(":"))
    except (AttributeError, ValueError):
        raise InvalidSelection(f"Invalid time {value!r}, expected HH:MM")
    total = hours * 60 + minutes
    if not 0 <= minutes < 60 or not 0 <= total <= 24 * 60:
        raise InvalidSelection(f"Invalid time {value!r}, expected HH:MM")
    return total


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def resolve_operating_hours(raw: Union[str, dict, None], target_date: date) -> DayWindow:
    if raw is None:
        return CLOSED
    if isinstance(raw, str):
        if raw.strip() == ALWAYS_OPEN:
            return ALL_DAY
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning(f"Unreadable operating hours {raw!r}, treating spot as closed")
            return CLOSED
        if not isinstance(raw, dict):
            return CLOSED

    weekday = WEEKDAYS[target_date.weekday()].lower()
    day_hours = next(
        (hours for key, hours in raw.items() if str(key).strip().lower() == weekday),
        None,
    )
    if not day_hours:
        return CLOSED
    if not isinstance(day_hours, dict):
        logger.warning(f"Unreadable hours {day_hours!r} for {weekday}, treating spot as closed")
        return CLOSED
    if not day_hours.get("isOpen"):
        return CLOSED
    if day_hours.get("is24Hours"):
        return ALL_DAY
    return DayWindow(
        is_open=True,
        open_time=day_hours.get("openTime") or DEFAULT_OPEN,
        close_time=day_hours.get("closeTime") or DEFAULT_CLOSE,
    )


def generate_slots(open_time: str, close_time: str, slot_minutes: int = HOUR_MINUTES) -> Iterator[TimeSlot]:
    start = parse_hhmm(open_time)
    close = parse_hhmm(close_time)
    while start + slot_minutes <= close:
        yield TimeSlot(start=format_hhmm(start), end=format_hhmm(start + slot_minutes))
        start += slot_minutes


def slots_for_date(raw_hours: Union[str, dict, None], target_date: date) -> List[TimeSlot]:
    window = resolve_operating_hours(raw_hours, target_date)
    if not window.is_open:
        return []
    return list(generate_slots(window.open_time, window.close_time))


def slot_bounds(target_date: date, slot: TimeSlot, tz: tzinfo) -> Tuple[datetime, datetime]:
    midnight = datetime.combine(target_date, time(0, 0), tzinfo=tz)
    return (
        midnight + timedelta(minutes=parse_hhmm(slot.start)),
        midnight + timedelta(minutes=parse_hhmm(slot.end)),
    )


def day_bounds(target_date: date, tz: tzinfo) -> Tuple[datetime, datetime]:
    midnight = datetime.combine(target_date, time(0, 0), tzinfo=tz)
    return midnight, midnight + timedelta(days=1)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def _overlaps_any(start: datetime, end: datetime, intervals: Sequence[Tuple[datetime, datetime]]) -> bool:
    return any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in intervals)


def _live_intervals(bookings: Iterable) -> List[Tuple[datetime, datetime]]:
    return [(b.start_time, b.end_time) for b in bookings if b.status in LIVE_STATUSES]


def classify_slots(
    slots: Iterable[TimeSlot],
    target_date: date,
    bookings: Iterable,
    now: datetime,
    tz: tzinfo,
    price,
    min_remaining_minutes: int = 30,
    blocks: Iterable = (),
) -> List[SlotAvailability]:
    """Mark every slot available, booked or unavailable.

    ``bookings`` are any objects with ``start_time``, ``end_time`` and
    ``status``; bookings that no longer hold capacity are ignored. Slots
    overlapping one of ``blocks`` (owner closures) are unavailable.
    """
    live = _live_intervals(bookings)
    closed = [(b.start_time, b.end_time) for b in blocks]
    result = []
    for slot in slots:
        starts_at, ends_at = slot_bounds(target_date, slot, tz)
        width = int((ends_at - starts_at).total_seconds() // 60)
        left = remaining_minutes(ends_at, now, slot_minutes=width)
        too_late = now >= starts_at and left < min_remaining_minutes
        blocked = _overlaps_any(starts_at, ends_at, closed)

        if _overlaps_any(starts_at, ends_at, live):
            status = SlotStatus.BOOKED
        elif blocked or too_late:
            status = SlotStatus.UNAVAILABLE
        else:
            status = SlotStatus.AVAILABLE

        priceable = not (too_late or blocked) and left >= MIN_BOOKABLE_MINUTES
        slot_price = prorated_slot_price(price, left) if priceable else None
        result.append(SlotAvailability(
            start=slot.start,
            end=slot.end,
            starts_at=starts_at,
            ends_at=ends_at,
            status=status,
            remaining_minutes=left,
            price=slot_price,
            blocked=blocked,
        ))
    return result


def is_consecutive(slots: Sequence) -> bool:
    return all(prev.end == nxt.start for prev, nxt in zip(slots, slots[1:]))


def validate_selection(selected_starts: Iterable[str], day_slots: Sequence[SlotAvailability]) -> List[SlotAvailability]:
    """Return the chosen slots in time order, or reject the selection outright."""
    starts = [s.strip() for s in selected_starts]
    if not starts:
        raise InvalidSelection("Select at least one time slot")
    if len(set(starts)) != len(starts):
        raise InvalidSelection("The same time slot was selected twice")

    by_start = {slot.start: slot for slot in day_slots}
    missing = [s for s in starts if s not in by_start]
    if missing:
        raise InvalidSelection(f"Time slots not offered on this date: {', '.join(missing)}")

    chosen = sorted((by_start[s] for s in starts), key=lambda slot: parse_hhmm(slot.start))
    if not is_consecutive(chosen):
        raise InvalidSelection("You can only select consecutive time slots")

    for slot in chosen:
        if slot.status == SlotStatus.BOOKED:
            raise CapacityConflict(f"Slot {slot.start}-{slot.end} is no longer available")
        if slot.status == SlotStatus.UNAVAILABLE and slot.blocked:
            raise InvalidSelection(f"Slot {slot.start}-{slot.end} is closed by the spot owner")
        if slot.status == SlotStatus.UNAVAILABLE:
            raise InvalidSelection(f"Slot {slot.start}-{slot.end} has too little time left to book")
    return chosen


# Whole-day and whole-month bookings

@dataclass(frozen=True)
class DayAvailability:
    date: date
    starts_at: datetime
    ends_at: datetime
    status: SlotStatus
    blocked: bool = False


def add_months(day: date, months: int) -> date:
    """Same day of the month ``months`` later, clamped to the end of shorter months."""
    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def date_range(first: date, end: date) -> List[date]:
    """Every date from ``first`` up to but not including ``end``."""
    return [first + timedelta(days=offset) for offset in range((end - first).days)]


def consecutive_days(days: Iterable[date]) -> List[date]:
    chosen = sorted(days)
    if not chosen:
        raise InvalidSelection("Select at least one day")
    if len(set(chosen)) != len(chosen):
        raise InvalidSelection("The same day was selected twice")
    if any((nxt - prev).days != 1 for prev, nxt in zip(chosen, chosen[1:])):
        raise InvalidSelection("You can only select consecutive days")
    if len(chosen) > MAX_RANGE_DAYS:
        raise InvalidSelection(f"A booking can cover at most {MAX_RANGE_DAYS} days")
    return chosen


def month_days(start_date: date, months: int) -> List[date]:
    if not 1 <= months <= MAX_MONTHS:
        raise InvalidSelection(f"Choose between 1 and {MAX_MONTHS} months")
    return date_range(start_date, add_months(start_date, months))


def classify_days(
    days: Iterable[date],
    bookings: Iterable,
    now: datetime,
    tz: tzinfo,
    blocks: Iterable = (),
) -> List[DayAvailability]:
    """Mark whole days available, booked or unavailable.

    A day is booked when any live booking touches it, and unavailable when it
    is already over or the owner has closed part of it.
    """
    live = _live_intervals(bookings)
    closed = [(b.start_time, b.end_time) for b in blocks]
    today = now.astimezone(tz).date()
    result = []
    for day in days:
        starts_at, ends_at = day_bounds(day, tz)
        blocked = _overlaps_any(starts_at, ends_at, closed)
        if _overlaps_any(starts_at, ends_at, live):
            status = SlotStatus.BOOKED
        elif blocked or day < today:
            status = SlotStatus.UNAVAILABLE
        else:
            status = SlotStatus.AVAILABLE
        result.append(DayAvailability(date=day, starts_at=starts_at, ends_at=ends_at, status=status, blocked=blocked))
    return result


def validate_days(day_availability: Sequence[DayAvailability]) -> None:
    booked = [str(day.date) for day in day_availability if day.status == SlotStatus.BOOKED]
    if booked:
        raise CapacityConflict(f"Already booked on {', '.join(booked)}")
    for day in day_availability:
        if day.status == SlotStatus.UNAVAILABLE and day.blocked:
            raise InvalidSelection(f"The spot is closed by its owner on {day.date}")
        if day.status == SlotStatus.UNAVAILABLE:
            raise InvalidSelection(f"{day.date} is in the past")
