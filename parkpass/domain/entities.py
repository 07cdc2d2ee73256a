from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from parkpass.domain.common import BlockStatus, BookingStatus, BookingType, PaymentStatus, PaymentMethod, SlipStatus


class Vehicle:
    def __init__(
        self,
        user_id: str,
        license_plate: str,
        make: str,
        model: str,
        color: str,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.user_id = user_id
        self.license_plate = license_plate
        self.make = make
        self.model = model
        self.color = color
        self.created_at = created_at


class ParkingSpot:
    def __init__(
        self,
        owner_id: str,
        name: str,
        total_slots: int,
        price: Decimal,
        operating_hours: Union[str, dict, None] = None,
        available_slots: Optional[int] = None,
        daily_price: Optional[Decimal] = None,
        monthly_price: Optional[Decimal] = None,
        id: Optional[str] = None,
    ):
        if total_slots < 0:
            raise ValueError("total_slots must not be negative")
        if available_slots is None:
            available_slots = total_slots
        if not 0 <= available_slots <= total_slots:
            raise ValueError(f"available_slots must be between 0 and {total_slots}")
        self.id = id
        self.owner_id = owner_id
        self.name = name
        self.total_slots = total_slots
        self.available_slots = available_slots
        self.price = Decimal(price)
        self.daily_price = Decimal(daily_price) if daily_price is not None else None
        self.monthly_price = Decimal(monthly_price) if monthly_price is not None else None
        self.operating_hours = operating_hours


class Booking:
    def __init__(
        self,
        user_id: str,
        spot_id: str,
        vehicle_id: str,
        start_time: datetime,
        end_time: datetime,
        total_cost: Decimal,
        qr_code: str,
        pin: str,
        status: BookingStatus = BookingStatus.PENDING,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        payment_method: PaymentMethod = PaymentMethod.QR_CODE,
        booking_type: BookingType = BookingType.HOURLY,
        id: Optional[str] = None,
        confirmed_at: Optional[datetime] = None,
        entered_at: Optional[datetime] = None,
        exited_at: Optional[datetime] = None,
        cancelled_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        if start_time >= end_time:
            raise ValueError("Booking start_time must be before end_time")
        self.id = id
        self.user_id = user_id
        self.spot_id = spot_id
        self.vehicle_id = vehicle_id
        self.start_time = start_time
        self.end_time = end_time
        self.total_cost = Decimal(total_cost)
        self.qr_code = qr_code
        self.pin = pin
        self.status = BookingStatus(status)
        self.payment_status = PaymentStatus(payment_status)
        self.payment_method = PaymentMethod(payment_method)
        self.booking_type = BookingType(booking_type)
        self.confirmed_at = confirmed_at
        self.entered_at = entered_at
        self.exited_at = exited_at
        self.cancelled_at = cancelled_at
        self.created_at = created_at
        self.updated_at = updated_at


class PaymentSlip:
    def __init__(
        self,
        booking_id: str,
        image_url: str,
        status: SlipStatus = SlipStatus.PENDING,
        id: Optional[str] = None,
        ocr_text: Optional[str] = None,
        ocr_confidence: Optional[float] = None,
        ocr_verification: Optional[bool] = None,
        notes: Optional[str] = None,
        verified_by: Optional[str] = None,
        verified_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.booking_id = booking_id
        self.image_url = image_url
        self.status = SlipStatus(status)
        self.ocr_text = ocr_text
        self.ocr_confidence = ocr_confidence
        self.ocr_verification = ocr_verification
        self.notes = notes
        self.verified_by = verified_by
        self.verified_at = verified_at
        self.created_at = created_at


class AvailabilityBlock:
    """A window the spot owner has taken out of sale, for maintenance or any other reason."""

    def __init__(
        self,
        spot_id: str,
        start_time: datetime,
        end_time: datetime,
        status: BlockStatus = BlockStatus.BLOCKED,
        reason: Optional[str] = None,
        created_by: Optional[str] = None,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ):
        if start_time >= end_time:
            raise ValueError("Block start_time must be before end_time")
        self.id = id
        self.spot_id = spot_id
        self.start_time = start_time
        self.end_time = end_time
        self.status = BlockStatus(status)
        self.reason = reason
        self.created_by = created_by
        self.created_at = created_at
