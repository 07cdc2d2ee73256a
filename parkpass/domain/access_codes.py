"""Booking access codes: QR tokens and payloads, PINs, and parsing of scanned strings."""
import json
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Union

from parkpass.domain.exceptions import InvalidSelection

QR_PAYLOAD_TYPE = "parking_verification"
PIN_PATTERN = re.compile(r"^\d{4}$")
PIN_MIN = 1000
PIN_RANGE = 9000


@dataclass(frozen=True)
class PinCode:
    pin: str


@dataclass(frozen=True)
class QrPayload:
    booking_id: str
    spot_id: str
    timestamp: str = ""

    def encode(self) -> str:
        return json.dumps(
            {"type": QR_PAYLOAD_TYPE, "bookingId": self.booking_id, "spotId": self.spot_id, "timestamp": self.timestamp},
            separators=(",", ":"),
        )


@dataclass(frozen=True)
class LegacyToken:
    """A bare ``qr_code`` value from bookings issued before JSON payloads."""
    token: str


ScanCode = Union[PinCode, QrPayload, LegacyToken]


def new_qr_token() -> str:
    return f"PK-{uuid.uuid4().hex[:12].upper()}"


def build_qr_payload(booking_id: str, spot_id: str, issued_at: datetime) -> str:
    return QrPayload(booking_id=str(booking_id), spot_id=str(spot_id), timestamp=issued_at.isoformat()).encode()


def _int32(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def generate_pin(booking_id: str, spot_id: str) -> str:
    """Stable 4-digit PIN derived from the booking and spot ids."""
    h = 0
    for char in f"{booking_id}-{spot_id}":
        h = _int32(h * 31 + ord(char))
    return str(abs(h) % PIN_RANGE + PIN_MIN)


def random_pin() -> str:
    return str(PIN_MIN + secrets.randbelow(PIN_RANGE))


def is_pin(value: str) -> bool:
    return bool(PIN_PATTERN.match(value))


def parse_scan_code(raw: str) -> ScanCode:
    code = (raw or "").strip()
    if not code:
        raise InvalidSelection("Empty scan code")
    if is_pin(code):
        return PinCode(pin=code)
    if not code.startswith("{"):
        return LegacyToken(token=code)

    try:
        data = json.loads(code)
    except ValueError:
        raise InvalidSelection("Invalid QR format")
    if not isinstance(data, dict) or data.get("type") != QR_PAYLOAD_TYPE:
        raise InvalidSelection("Invalid QR format")
    if not data.get("bookingId"):
        raise InvalidSelection("Invalid QR format, missing bookingId")
    if not data.get("spotId"):
        raise InvalidSelection("Invalid QR format, missing spotId")
    return QrPayload(
        booking_id=str(data["bookingId"]),
        spot_id=str(data["spotId"]),
        timestamp=str(data.get("timestamp") or ""),
    )
