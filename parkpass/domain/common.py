from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class SlipStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


class BookingType(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"


class BlockStatus(str, Enum):
    BLOCKED = "blocked"
    MAINTENANCE = "maintenance"


class PaymentMethod(str, Enum):
    QR_CODE = "qr_code"
    BANK_TRANSFER = "bank_transfer"


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    UNAVAILABLE = "unavailable"


class ScanAction(str, Enum):
    ENTRY = "entry"
    EXIT = "exit"
    NONE = "none"


# Bookings in these states hold a unit of the spot's capacity for their interval
LIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ACTIVE})
TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

# Operating-hours sentinel for locations that never close
ALWAYS_OPEN = "24/7 Access"
