import json
import uuid
from typing import List, Optional
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, case, delete, update

from parkpass.domain.common import BookingStatus, PaymentMethod, SlipStatus, LIVE_STATUSES
from parkpass.domain.drafts import DraftBooking
from parkpass.domain.entities import AvailabilityBlock, Vehicle, ParkingSpot, Booking, PaymentSlip
from parkpass.domain.exceptions import CapacityConflict
from parkpass.infrastructure.persistence.models.models import (
    Vehicle as ORMVehicle,
    ParkingSpot as ORMParkingSpot,
    Booking as ORMBooking,
    PaymentSlip as ORMPaymentSlip,
    BookingDraft as ORMBookingDraft,
    AvailabilityBlock as ORMAvailabilityBlock,
)
from parkpass.application.repositories import (
    AbstractParkingSpotRepository,
    AbstractVehicleRepository,
    AbstractBookingRepository,
    AbstractPaymentSlipRepository,
    AbstractDraftRepository,
    AbstractAvailabilityBlockRepository,
)


def _to_spot(orm_spot: ORMParkingSpot) -> ParkingSpot:
    return ParkingSpot(
        id=orm_spot.id,
        owner_id=orm_spot.owner_id,
        name=orm_spot.name,
        total_slots=orm_spot.total_slots,
        available_slots=orm_spot.available_slots,
        price=orm_spot.price,
        daily_price=orm_spot.daily_price,
        monthly_price=orm_spot.monthly_price,
        operating_hours=orm_spot.operating_hours,
    )


def _to_vehicle(orm_vehicle: ORMVehicle) -> Vehicle:
    return Vehicle(
        id=orm_vehicle.id,
        user_id=orm_vehicle.user_id,
        license_plate=orm_vehicle.license_plate,
        make=orm_vehicle.make,
        model=orm_vehicle.model,
        color=orm_vehicle.color,
        created_at=orm_vehicle.created_at,
    )


def _to_booking(orm_booking: ORMBooking) -> Booking:
    return Booking(
        id=orm_booking.id,
        user_id=orm_booking.user_id,
        spot_id=orm_booking.spot_id,
        vehicle_id=orm_booking.vehicle_id,
        start_time=orm_booking.start_time,
        end_time=orm_booking.end_time,
        total_cost=orm_booking.total_cost,
        status=orm_booking.status,
        payment_method=orm_booking.payment_method,
        payment_status=orm_booking.payment_status,
        booking_type=orm_booking.booking_type,
        qr_code=orm_booking.qr_code,
        pin=orm_booking.pin,
        confirmed_at=orm_booking.confirmed_at,
        entered_at=orm_booking.entered_at,
        exited_at=orm_booking.exited_at,
        cancelled_at=orm_booking.cancelled_at,
        created_at=orm_booking.created_at,
        updated_at=orm_booking.updated_at,
    )


def _to_slip(orm_slip: ORMPaymentSlip) -> PaymentSlip:
    return PaymentSlip(
        id=orm_slip.id,
        booking_id=orm_slip.booking_id,
        image_url=orm_slip.image_url,
        status=orm_slip.status,
        ocr_text=orm_slip.ocr_text,
        ocr_confidence=orm_slip.ocr_confidence,
        ocr_verification=orm_slip.ocr_verification,
        notes=orm_slip.notes,
        verified_by=orm_slip.verified_by,
        verified_at=orm_slip.verified_at,
        created_at=orm_slip.created_at,
    )


def _to_block(orm_block: ORMAvailabilityBlock) -> AvailabilityBlock:
    return AvailabilityBlock(
        id=orm_block.id,
        spot_id=orm_block.spot_id,
        start_time=orm_block.start_time,
        end_time=orm_block.end_time,
        status=orm_block.status,
        reason=orm_block.reason,
        created_by=orm_block.created_by,
        created_at=orm_block.created_at,
    )


def _to_draft(orm_draft: ORMBookingDraft) -> DraftBooking:
    return DraftBooking(
        id=orm_draft.id,
        user_id=orm_draft.user_id,
        spot_id=orm_draft.spot_id,
        date=orm_draft.date,
        slot_starts=tuple(json.loads(orm_draft.slot_starts)),
        vehicle_id=orm_draft.vehicle_id,
        payment_method=PaymentMethod(orm_draft.payment_method) if orm_draft.payment_method else None,
        created_at=orm_draft.created_at,
        expires_at=orm_draft.expires_at,
    )


class SQLAlchemyParkingSpotRepository(AbstractParkingSpotRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, spot_id: str) -> Optional[ParkingSpot]:
        # The counter is changed with bulk UPDATEs, never trust the identity map
        result = await self.session.execute(
            select(ORMParkingSpot).where(ORMParkingSpot.id == spot_id).execution_options(populate_existing=True)
        )
        orm_spot = result.scalars().first()
        return _to_spot(orm_spot) if orm_spot else None

    async def add(self, spot: ParkingSpot) -> ParkingSpot:
        orm_spot = ORMParkingSpot(
            id=spot.id or str(uuid.uuid4()),
            owner_id=spot.owner_id,
            name=spot.name,
            total_slots=spot.total_slots,
            available_slots=spot.available_slots,
            price=spot.price,
            daily_price=spot.daily_price,
            monthly_price=spot.monthly_price,
            operating_hours=spot.operating_hours,
        )
        self.session.add(orm_spot)
        await self.session.flush()
        await self.session.refresh(orm_spot)
        await self.session.commit()
        return _to_spot(orm_spot)

    async def get_by_owner(self, owner_id: str) -> List[ParkingSpot]:
        result = await self.session.execute(
            select(ORMParkingSpot).where(ORMParkingSpot.owner_id == owner_id).order_by(ORMParkingSpot.name)
        )
        return [_to_spot(s) for s in result.scalars().all()]


class SQLAlchemyVehicleRepository(AbstractVehicleRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, vehicle_id: str) -> Optional[Vehicle]:
        orm_vehicle = await self.session.get(ORMVehicle, vehicle_id)
        return _to_vehicle(orm_vehicle) if orm_vehicle else None

    async def add(self, vehicle: Vehicle) -> Vehicle:
        orm_vehicle = ORMVehicle(
            id=vehicle.id or str(uuid.uuid4()),
            user_id=vehicle.user_id,
            license_plate=vehicle.license_plate.upper().strip(),
            make=vehicle.make,
            model=vehicle.model,
            color=vehicle.color,
        )
        self.session.add(orm_vehicle)
        await self.session.flush()
        await self.session.refresh(orm_vehicle)
        await self.session.commit()
        return _to_vehicle(orm_vehicle)


class SQLAlchemyBookingRepository(AbstractBookingRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fresh(self, booking_id: str) -> Optional[ORMBooking]:
        result = await self.session.execute(
            select(ORMBooking).where(ORMBooking.id == booking_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_by_id(self, booking_id: str) -> Optional[Booking]:
        orm_booking = await self._fresh(booking_id)
        return _to_booking(orm_booking) if orm_booking else None

    async def get_by_qr_code(self, qr_code: str) -> Optional[Booking]:
        result = await self.session.execute(
            select(ORMBooking).where(ORMBooking.qr_code == qr_code).execution_options(populate_existing=True)
        )
        orm_booking = result.scalars().first()
        return _to_booking(orm_booking) if orm_booking else None

    async def find_by_pin(self, pin: str, owner_id: str, spot_id: Optional[str] = None) -> List[Booking]:
        conditions = [ORMBooking.pin == pin, ORMParkingSpot.owner_id == owner_id]
        if spot_id:
            conditions.append(ORMBooking.spot_id == spot_id)
        result = await self.session.execute(
            select(ORMBooking)
            .join(ORMParkingSpot)
            .where(and_(*conditions))
            .order_by(ORMBooking.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [_to_booking(b) for b in result.scalars().all()]

    async def get_live_overlapping(self, spot_id: str, start: datetime, end: datetime) -> List[Booking]:
        result = await self.session.execute(
            select(ORMBooking).where(
                and_(
                    ORMBooking.spot_id == spot_id,
                    ORMBooking.status.in_([s.value for s in LIVE_STATUSES]),
                    ORMBooking.start_time < end,
                    ORMBooking.end_time > start,
                )
            ).order_by(ORMBooking.start_time).execution_options(populate_existing=True)
        )
        return [_to_booking(b) for b in result.scalars().all()]

    async def add(self, booking: Booking) -> Booking:
        orm_booking = ORMBooking(
            id=booking.id or str(uuid.uuid4()),
            user_id=booking.user_id,
            spot_id=booking.spot_id,
            vehicle_id=booking.vehicle_id,
            start_time=booking.start_time,
            end_time=booking.end_time,
            total_cost=booking.total_cost,
            status=booking.status.value,
            payment_method=booking.payment_method.value,
            payment_status=booking.payment_status.value,
            booking_type=booking.booking_type.value,
            qr_code=booking.qr_code,
            pin=booking.pin,
        )
        self.session.add(orm_booking)
        await self.session.flush()
        await self.session.refresh(orm_booking)
        await self.session.commit()
        return _to_booking(orm_booking)

    def _guarded_update(self, booking_id: str, expected: BookingStatus, new: BookingStatus, values: dict):
        values = {k: (v.value if hasattr(v, "value") else v) for k, v in values.items()}
        return (
            update(ORMBooking)
            .where(and_(ORMBooking.id == booking_id, ORMBooking.status == BookingStatus(expected).value))
            .values(status=BookingStatus(new).value, **values)
            .execution_options(synchronize_session=False)
        )

    async def transition(self, booking_id: str, expected: BookingStatus, new: BookingStatus, **values) -> Optional[Booking]:
        result = await self.session.execute(self._guarded_update(booking_id, expected, new, values))
        if result.rowcount != 1:
            await self.session.rollback()
            return None
        await self.session.commit()
        return await self.get_by_id(booking_id)

    async def transition_with_capacity(
        self, booking_id: str, expected: BookingStatus, new: BookingStatus, capacity_delta: int, **values
    ) -> Optional[Booking]:
        result = await self.session.execute(self._guarded_update(booking_id, expected, new, values))
        if result.rowcount != 1:
            await self.session.rollback()
            return None

        spot_id = (await self.session.execute(
            select(ORMBooking.spot_id).where(ORMBooking.id == booking_id)
        )).scalar_one()
        counter = ORMParkingSpot.available_slots
        if capacity_delta < 0:
            statement = (
                update(ORMParkingSpot)
                .where(and_(ORMParkingSpot.id == spot_id, counter + capacity_delta >= 0))
                .values(available_slots=counter + capacity_delta)
            )
        else:
            statement = (
                update(ORMParkingSpot)
                .where(ORMParkingSpot.id == spot_id)
                .values(available_slots=case(
                    (counter + capacity_delta > ORMParkingSpot.total_slots, ORMParkingSpot.total_slots),
                    else_=counter + capacity_delta,
                ))
            )
        spot_result = await self.session.execute(statement.execution_options(synchronize_session=False))
        if spot_result.rowcount != 1:
            await self.session.rollback()
            raise CapacityConflict("No free space left at this spot, entry refused")

        await self.session.commit()
        return await self.get_by_id(booking_id)


class SQLAlchemyPaymentSlipRepository(AbstractPaymentSlipRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, slip_id: str) -> Optional[PaymentSlip]:
        result = await self.session.execute(
            select(ORMPaymentSlip).where(ORMPaymentSlip.id == slip_id).execution_options(populate_existing=True)
        )
        orm_slip = result.scalars().first()
        return _to_slip(orm_slip) if orm_slip else None

    async def add(self, slip: PaymentSlip) -> PaymentSlip:
        orm_slip = ORMPaymentSlip(
            id=slip.id or str(uuid.uuid4()),
            booking_id=slip.booking_id,
            image_url=slip.image_url,
            status=slip.status.value,
            ocr_text=slip.ocr_text,
        )
        self.session.add(orm_slip)
        await self.session.flush()
        await self.session.refresh(orm_slip)
        await self.session.commit()
        return _to_slip(orm_slip)

    async def update(self, slip: PaymentSlip) -> PaymentSlip:
        orm_slip = await self.session.get(ORMPaymentSlip, slip.id)
        if orm_slip:
            orm_slip.status = slip.status.value
            orm_slip.ocr_text = slip.ocr_text
            orm_slip.ocr_confidence = slip.ocr_confidence
            orm_slip.ocr_verification = slip.ocr_verification
            orm_slip.notes = slip.notes
            orm_slip.verified_by = slip.verified_by
            orm_slip.verified_at = slip.verified_at
            await self.session.flush()
            await self.session.refresh(orm_slip)
            await self.session.commit()
            return _to_slip(orm_slip)
        raise ValueError(f"Payment slip with ID {slip.id} not found.")

    async def get_pending_for_owner(self, owner_id: str) -> List[PaymentSlip]:
        result = await self.session.execute(
            select(ORMPaymentSlip)
            .join(ORMBooking)
            .join(ORMParkingSpot)
            .where(
                and_(
                    ORMParkingSpot.owner_id == owner_id,
                    ORMPaymentSlip.status == SlipStatus.PENDING.value,
                )
            )
            .order_by(ORMPaymentSlip.ocr_confidence.desc().nulls_last(), ORMPaymentSlip.created_at)
        )
        return [_to_slip(s) for s in result.scalars().all()]

    async def supersede_pending(self, booking_id: str, keep_slip_id: str) -> int:
        result = await self.session.execute(
            update(ORMPaymentSlip)
            .where(
                and_(
                    ORMPaymentSlip.booking_id == booking_id,
                    ORMPaymentSlip.id != keep_slip_id,
                    ORMPaymentSlip.status == SlipStatus.PENDING.value,
                )
            )
            .values(status=SlipStatus.SUPERSEDED.value)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount


class SQLAlchemyDraftRepository(AbstractDraftRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, draft: DraftBooking) -> DraftBooking:
        orm_draft = ORMBookingDraft(
            id=draft.id,
            user_id=draft.user_id,
            spot_id=draft.spot_id,
            date=draft.date,
            slot_starts=json.dumps(list(draft.slot_starts)),
            vehicle_id=draft.vehicle_id,
            payment_method=draft.payment_method.value if draft.payment_method else None,
            created_at=draft.created_at,
            expires_at=draft.expires_at,
        )
        self.session.add(orm_draft)
        await self.session.flush()
        await self.session.commit()
        return draft

    async def get_by_id(self, draft_id: str) -> Optional[DraftBooking]:
        orm_draft = await self.session.get(ORMBookingDraft, draft_id)
        return _to_draft(orm_draft) if orm_draft else None

    async def delete(self, draft_id: str) -> None:
        await self.session.execute(delete(ORMBookingDraft).where(ORMBookingDraft.id == draft_id))
        await self.session.commit()

    async def delete_expired(self, now: datetime) -> int:
        result = await self.session.execute(
            delete(ORMBookingDraft)
            .where(ORMBookingDraft.expires_at <= now)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.commit()
        return result.rowcount


class SQLAlchemyAvailabilityBlockRepository(AbstractAvailabilityBlockRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, block: AvailabilityBlock) -> AvailabilityBlock:
        orm_block = ORMAvailabilityBlock(
            id=block.id or str(uuid.uuid4()),
            spot_id=block.spot_id,
            start_time=block.start_time,
            end_time=block.end_time,
            status=block.status.value,
            reason=block.reason,
            created_by=block.created_by,
        )
        self.session.add(orm_block)
        await self.session.flush()
        await self.session.refresh(orm_block)
        await self.session.commit()
        return _to_block(orm_block)

    async def get_by_id(self, block_id: str) -> Optional[AvailabilityBlock]:
        result = await self.session.execute(
            select(ORMAvailabilityBlock).where(ORMAvailabilityBlock.id == block_id)
        )
        orm_block = result.scalars().first()
        return _to_block(orm_block) if orm_block else None

    async def get_overlapping(self, spot_id: str, start: datetime, end: datetime) -> List[AvailabilityBlock]:
        result = await self.session.execute(
            select(ORMAvailabilityBlock).where(
                and_(
                    ORMAvailabilityBlock.spot_id == spot_id,
                    ORMAvailabilityBlock.start_time < end,
                    ORMAvailabilityBlock.end_time > start,
                )
            ).order_by(ORMAvailabilityBlock.start_time)
        )
        return [_to_block(b) for b in result.scalars().all()]

    async def get_upcoming(self, spot_id: str, now: datetime) -> List[AvailabilityBlock]:
        result = await self.session.execute(
            select(ORMAvailabilityBlock)
            .where(and_(ORMAvailabilityBlock.spot_id == spot_id, ORMAvailabilityBlock.end_time >= now))
            .order_by(ORMAvailabilityBlock.start_time)
        )
        return [_to_block(b) for b in result.scalars().all()]

    async def delete(self, block_id: str) -> None:
        await self.session.execute(delete(ORMAvailabilityBlock).where(ORMAvailabilityBlock.id == block_id))
        await self.session.commit()
