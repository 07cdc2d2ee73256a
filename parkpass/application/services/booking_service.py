import uuid
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional
from loguru import logger

from parkpass.application.locks import SpotLockRegistry, spot_locks
from parkpass.application.ports import AbstractNotifier
from parkpass.application.repositories import (
    AbstractParkingSpotRepository,
    AbstractVehicleRepository,
    AbstractBookingRepository,
    AbstractDraftRepository,
    AbstractAvailabilityBlockRepository,
)
from parkpass.application.services.availability_service import AvailabilityService
from parkpass.config.settings_env import settings
from parkpass.domain.access_codes import build_qr_payload, generate_pin, new_qr_token, random_pin
from parkpass.domain.common import BookingType, PaymentMethod, PaymentStatus
from parkpass.domain.drafts import DraftBooking
from parkpass.domain.entities import Booking
from parkpass.domain.exceptions import AccessDenied, InvalidSelection, InvalidTransition, NotFound
from parkpass.domain.lifecycle import BookingAction, next_status
from parkpass.domain.pricing import daily_rate, monthly_rate, range_cost, total_cost
from parkpass.domain.scheduling import consecutive_days, day_bounds, month_days, validate_days, validate_selection
from parkpass.shared.utils import log_integrity_violation, utcnow


class BookingService:
    def __init__(
        self,
        parking_spot_repo: AbstractParkingSpotRepository,
        vehicle_repo: AbstractVehicleRepository,
        booking_repo: AbstractBookingRepository,
        draft_repo: AbstractDraftRepository,
        notifier: Optional[AbstractNotifier] = None,
        locks: Optional[SpotLockRegistry] = None,
        tz: Optional[tzinfo] = None,
        draft_ttl: Optional[timedelta] = None,
        pin_strategy: Optional[str] = None,
        block_repo: Optional[AbstractAvailabilityBlockRepository] = None,
    ):
        self.parking_spot_repo = parking_spot_repo
        self.vehicle_repo = vehicle_repo
        self.booking_repo = booking_repo
        self.draft_repo = draft_repo
        self.notifier = notifier
        self.locks = locks or spot_locks
        self.availability = AvailabilityService(parking_spot_repo, booking_repo, block_repo=block_repo, tz=tz)
        self.draft_ttl = draft_ttl or timedelta(hours=settings.DRAFT_TTL_HOURS)
        self.pin_strategy = pin_strategy or settings.PIN_STRATEGY

    # Drafts

    async def save_draft(
        self,
        user_id: str,
        spot_id: str,
        target_date: date,
        slot_starts: Iterable[str],
        vehicle_id: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None,
        now: Optional[datetime] = None,
    ) -> DraftBooking:
        now = now or utcnow()
        day_slots = await self.availability.get_availability(spot_id, target_date, now)
        chosen = validate_selection(slot_starts, day_slots)
        draft = DraftBooking.start(
            user_id,
            spot_id,
            target_date,
            [slot.start for slot in chosen],
            now=now,
            ttl=self.draft_ttl,
            vehicle_id=vehicle_id,
            payment_method=payment_method,
        )
        draft = await self.draft_repo.add(draft)
        logger.debug(f"Saved draft {draft.id} for user {user_id}, expires {draft.expires_at}")
        return draft

    async def get_draft(self, draft_id: str, user_id: str, now: Optional[datetime] = None) -> DraftBooking:
        draft = await self.draft_repo.get_by_id(draft_id)
        if draft is None or draft.user_id != user_id:
            raise NotFound(f"Draft booking {draft_id} not found")
        if draft.is_expired(now or utcnow()):
            await self.draft_repo.delete(draft_id)
            logger.info(f"Draft {draft_id} expired and was discarded")
            raise NotFound(f"Draft booking {draft_id} has expired")
        return draft

    async def purge_expired_drafts(self, now: Optional[datetime] = None) -> int:
        removed = await self.draft_repo.delete_expired(now or utcnow())
        if removed:
            logger.info(f"Removed {removed} expired booking drafts")
        return removed

    async def create_booking_from_draft(
        self,
        draft_id: str,
        user_id: str,
        vehicle_id: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        draft = await self.get_draft(draft_id, user_id, now)
        vehicle_id = vehicle_id or draft.vehicle_id
        if not vehicle_id:
            raise InvalidSelection("Select a vehicle before booking")

        booking = await self.create_booking(
            user_id,
            draft.spot_id,
            vehicle_id,
            draft.date,
            draft.slot_starts,
            payment_method=payment_method or draft.payment_method or PaymentMethod.QR_CODE,
            now=now,
        )
        await self.draft_repo.delete(draft.id)
        return booking

    # Bookings

    async def create_booking(
        self,
        user_id: str,
        spot_id: str,
        vehicle_id: str,
        target_date: date,
        slot_starts: Iterable[str],
        payment_method: PaymentMethod = PaymentMethod.QR_CODE,
        now: Optional[datetime] = None,
    ) -> Booking:
        now = now or utcnow()
        await self._check_vehicle(user_id, vehicle_id)

        # Availability is read again under the lock so the overlap check sees every committed booking
        async with self.locks.for_spot(spot_id):
            day_slots = await self.availability.get_availability(spot_id, target_date, now)
            chosen = validate_selection(slot_starts, day_slots)
            booking = await self._insert_booking(
                user_id,
                spot_id,
                vehicle_id,
                chosen[0].starts_at,
                chosen[-1].ends_at,
                total_cost(slot.price for slot in chosen),
                payment_method,
                BookingType.HOURLY,
            )

        logger.info(
            f"Booking {booking.id} created for spot {spot_id}: "
            f"{chosen[0].start}-{chosen[-1].end} on {target_date}, total {booking.total_cost}"
        )
        return booking

    async def create_daily_booking(
        self,
        user_id: str,
        spot_id: str,
        vehicle_id: str,
        days: Iterable[date],
        payment_method: PaymentMethod = PaymentMethod.QR_CODE,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Book whole consecutive days, from midnight of the first to midnight after the last."""
        chosen = consecutive_days(days)
        spot = await self.availability.get_spot(spot_id)
        cost = range_cost(daily_rate(spot.price, spot.daily_price), len(chosen))
        return await self._create_range_booking(
            user_id, spot_id, vehicle_id, chosen, cost, payment_method, BookingType.DAILY, now or utcnow()
        )

    async def create_monthly_booking(
        self,
        user_id: str,
        spot_id: str,
        vehicle_id: str,
        start_date: date,
        months: int,
        payment_method: PaymentMethod = PaymentMethod.QR_CODE,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Book ``months`` calendar months starting at midnight of ``start_date``."""
        days = month_days(start_date, months)
        spot = await self.availability.get_spot(spot_id)
        cost = range_cost(monthly_rate(spot.price, spot.daily_price, spot.monthly_price), months)
        return await self._create_range_booking(
            user_id, spot_id, vehicle_id, days, cost, payment_method, BookingType.MONTHLY, now or utcnow()
        )

    async def _create_range_booking(self, user_id, spot_id, vehicle_id, days, cost, payment_method, booking_type, now):
        await self._check_vehicle(user_id, vehicle_id)
        async with self.locks.for_spot(spot_id):
            spot = await self.availability.get_spot(spot_id)
            validate_days(await self.availability.classify_days_for_spot(spot, days, now))
            start, _ = day_bounds(days[0], self.availability.tz)
            _, end = day_bounds(days[-1], self.availability.tz)
            booking = await self._insert_booking(
                user_id, spot_id, vehicle_id, start, end, cost, payment_method, booking_type
            )

        logger.info(
            f"{booking_type.value.capitalize()} booking {booking.id} created for spot {spot_id}: "
            f"{days[0]} to {days[-1]}, total {booking.total_cost}"
        )
        return booking

    async def _check_vehicle(self, user_id: str, vehicle_id: str) -> None:
        vehicle = await self.vehicle_repo.get_by_id(vehicle_id)
        if vehicle is None:
            raise NotFound(f"Vehicle {vehicle_id} not found")
        if vehicle.user_id != user_id:
            raise AccessDenied("This vehicle is not registered to you")

    async def _insert_booking(
        self, user_id, spot_id, vehicle_id, start_time, end_time, cost, payment_method, booking_type
    ) -> Booking:
        booking_id = str(uuid.uuid4())
        pin = generate_pin(booking_id, spot_id) if self.pin_strategy == "deterministic" else random_pin()
        return await self.booking_repo.add(Booking(
            id=booking_id,
            user_id=user_id,
            spot_id=spot_id,
            vehicle_id=vehicle_id,
            start_time=start_time,
            end_time=end_time,
            total_cost=cost,
            qr_code=new_qr_token(),
            pin=pin,
            payment_method=PaymentMethod(payment_method),
            booking_type=booking_type,
        ))

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await self.booking_repo.get_by_id(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    async def get_booking_for(self, booking_id: str, actor_id: str) -> Booking:
        """The booking, if ``actor_id`` is its driver or the owner of its spot."""
        booking = await self.get_booking(booking_id)
        if actor_id != booking.user_id:
            spot = await self.availability.get_spot(booking.spot_id)
            if actor_id != spot.owner_id:
                raise AccessDenied("You do not have access to this booking")
        return booking

    async def qr_payload(self, booking_id: str, user_id: str) -> str:
        booking = await self.get_booking(booking_id)
        if booking.user_id != user_id:
            raise AccessDenied("You do not have access to this booking")
        return build_qr_payload(booking.id, booking.spot_id, booking.created_at or utcnow())

    async def cancel_booking(self, booking_id: str, actor_id: str, now: Optional[datetime] = None) -> Booking:
        booking = await self.get_booking_for(booking_id, actor_id)
        booking = await self._transition(booking, BookingAction.CANCEL, cancelled_at=now or utcnow())
        logger.info(f"Booking {booking_id} cancelled by {actor_id}")
        await self._notify(booking, "Booking cancelled", "Your parking booking has been cancelled.")
        return booking

    async def confirm_payment(self, booking_id: str, now: Optional[datetime] = None) -> Booking:
        booking = await self.get_booking(booking_id)
        booking = await self._transition(
            booking,
            BookingAction.VERIFY,
            payment_status=PaymentStatus.VERIFIED,
            confirmed_at=now or utcnow(),
        )
        logger.info(f"Payment verified, booking {booking_id} confirmed")
        await self._notify(booking, "Booking confirmed", "Your payment was verified and your booking is confirmed.")
        return booking

    async def reject_payment(self, booking_id: str, now: Optional[datetime] = None) -> Booking:
        booking = await self.get_booking(booking_id)
        booking = await self._transition(
            booking,
            BookingAction.REJECT,
            payment_status=PaymentStatus.REJECTED,
            cancelled_at=now or utcnow(),
        )
        logger.info(f"Payment rejected, booking {booking_id} cancelled")
        await self._notify(booking, "Payment rejected", "Your payment could not be verified and the booking was cancelled.")
        return booking

    async def _transition(self, booking: Booking, action: BookingAction, **values) -> Booking:
        try:
            new_status = next_status(booking.status, action)
            updated = await self.booking_repo.transition(booking.id, booking.status, new_status, **values)
            if updated is None:
                current = await self.get_booking(booking.id)
                raise InvalidTransition(current.status.value, action.value)
        except InvalidTransition as e:
            log_integrity_violation(e.message, booking_id=booking.id, action=action.value)
            raise
        return updated

    async def _notify(self, booking: Booking, title: str, message: str):
        if self.notifier is not None:
            await self.notifier.notify(booking.user_id, title, message)
