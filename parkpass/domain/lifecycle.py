"""Booking lifecycle: which action moves a booking to which status."""
from enum import Enum
from typing import Optional

from parkpass.domain.common import BookingStatus, TERMINAL_STATUSES
from parkpass.domain.exceptions import InvalidTransition


class BookingAction(str, Enum):
    VERIFY = "verify"
    REJECT = "reject"
    CANCEL = "cancel"
    ENTER = "enter"
    EXIT = "exit"


TRANSITIONS = {
    (BookingStatus.PENDING, BookingAction.VERIFY): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingAction.REJECT): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingAction.ENTER): BookingStatus.ACTIVE,
    (BookingStatus.ACTIVE, BookingAction.EXIT): BookingStatus.COMPLETED,
}

# Change applied to the spot's available_slots counter
CAPACITY_DELTA = {
    BookingAction.ENTER: -1,
    BookingAction.EXIT: 1,
}


def next_status(current: BookingStatus, action: BookingAction) -> BookingStatus:
    current = BookingStatus(current)
    action = BookingAction(action)
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransition(current.value, action.value)


def scan_action(current: BookingStatus) -> Optional[BookingAction]:
    """Gate action for a scan, or None when the booking is already finished."""
    current = BookingStatus(current)
    if current == BookingStatus.CONFIRMED:
        return BookingAction.ENTER
    if current == BookingStatus.ACTIVE:
        return BookingAction.EXIT
    if current in TERMINAL_STATUSES:
        return None
    raise InvalidTransition(current.value, "scan")
