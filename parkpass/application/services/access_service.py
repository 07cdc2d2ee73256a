from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from loguru import logger

from parkpass.application.repositories import AbstractBookingRepository, AbstractParkingSpotRepository
from parkpass.domain.access_codes import PinCode, QrPayload, parse_scan_code
from parkpass.domain.common import PaymentStatus, ScanAction, TERMINAL_STATUSES
from parkpass.domain.entities import Booking
from parkpass.domain.exceptions import AccessDenied, CapacityConflict, InvalidTransition, NotFound, ScopeMismatch
from parkpass.domain.lifecycle import BookingAction, CAPACITY_DELTA, next_status, scan_action
from parkpass.shared.utils import log_integrity_violation, utcnow


@dataclass(frozen=True)
class ScanResult:
    booking: Booking
    action: ScanAction
    message: str
    available_slots: int


class AccessService:
    """Gate-side validation of QR codes and PINs, driving entry and exit."""

    def __init__(self, booking_repo: AbstractBookingRepository, parking_spot_repo: AbstractParkingSpotRepository):
        self.booking_repo = booking_repo
        self.parking_spot_repo = parking_spot_repo

    async def resolve(self, code: str, operator_id: str, spot_id: Optional[str] = None) -> Booking:
        parsed = parse_scan_code(code)

        if isinstance(parsed, PinCode):
            matches = await self.booking_repo.find_by_pin(parsed.pin, operator_id, spot_id)
            if not matches:
                raise NotFound("No booking found for this PIN")
            # Prefer a booking that can still move through the gate
            live = [b for b in matches if b.status not in TERMINAL_STATUSES]
            return (live or matches)[0]

        if isinstance(parsed, QrPayload):
            booking = await self.booking_repo.get_by_id(parsed.booking_id)
            if booking is None:
                raise NotFound("Booking not found for this QR code")
            if parsed.spot_id != booking.spot_id:
                log_integrity_violation(
                    "QR spot does not match booking", booking_id=booking.id, qr_spot_id=parsed.spot_id
                )
                raise ScopeMismatch("This QR code does not match its booking's parking spot")
        else:
            booking = await self.booking_repo.get_by_qr_code(parsed.token)
            if booking is None:
                raise NotFound("Booking not found for this QR code")

        if spot_id and booking.spot_id != spot_id:
            log_integrity_violation("Booking scanned at another spot", booking_id=booking.id, scanned_at=spot_id)
            raise ScopeMismatch("This booking is for a different parking spot")
        return booking

    async def scan(
        self, code: str, operator_id: str, spot_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> ScanResult:
        booking = await self.resolve(code, operator_id, spot_id)
        spot = await self.parking_spot_repo.get_by_id(booking.spot_id)
        if spot is None or spot.owner_id != operator_id:
            raise AccessDenied("This booking is not for one of your parking spots")

        if booking.status in TERMINAL_STATUSES:
            logger.info(f"Repeated scan of {booking.status.value} booking {booking.id}")
            return ScanResult(booking, ScanAction.NONE, f"Booking is already {booking.status.value}", spot.available_slots)

        if booking.payment_status != PaymentStatus.VERIFIED:
            raise AccessDenied("Payment for this booking has not been verified")

        action = scan_action(booking.status)
        new_status = next_status(booking.status, action)
        stamp = {"entered_at": now or utcnow()} if action == BookingAction.ENTER else {"exited_at": now or utcnow()}
        try:
            updated = await self.booking_repo.transition_with_capacity(
                booking.id, booking.status, new_status, CAPACITY_DELTA[action], **stamp
            )
        except CapacityConflict:
            logger.warning(f"Spot {spot.id} is full, entry refused for booking {booking.id}")
            raise

        if updated is None:
            current = await self.booking_repo.get_by_id(booking.id)
            error = InvalidTransition(current.status.value, action.value)
            log_integrity_violation(error.message, booking_id=booking.id, action=action.value)
            raise error

        spot = await self.parking_spot_repo.get_by_id(spot.id)
        if action == BookingAction.ENTER:
            result = ScanResult(updated, ScanAction.ENTRY, "Entry recorded, booking is now active", spot.available_slots)
        else:
            result = ScanResult(updated, ScanAction.EXIT, "Exit recorded, booking completed", spot.available_slots)
        logger.info(f"{result.message} ({updated.id}), {spot.available_slots}/{spot.total_slots} slots free")
        return result
