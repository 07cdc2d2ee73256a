from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from parkpass.domain.common import (
    BlockStatus,
    BookingStatus,
    BookingType,
    PaymentMethod,
    PaymentStatus,
    ScanAction,
    SlipStatus,
    SlotStatus,
)


class SlotResponse(BaseModel):
    start: str
    end: str
    status: SlotStatus
    remaining_minutes: int
    price: Optional[float] = None
    blocked: bool = False

    model_config = ConfigDict(from_attributes=True)


class AvailabilityResponse(BaseModel):
    spot_id: str
    date: date
    slots: List[SlotResponse]


class DayAvailabilityResponse(BaseModel):
    date: date
    status: SlotStatus
    blocked: bool = False

    model_config = ConfigDict(from_attributes=True)


class DayRangeAvailabilityResponse(BaseModel):
    spot_id: str
    start: date
    end: date
    days: List[DayAvailabilityResponse]


class SpotResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    total_slots: int
    available_slots: int
    price: float
    daily_price: Optional[float] = None
    monthly_price: Optional[float] = None
    operating_hours: Union[str, dict, None] = None

    model_config = ConfigDict(from_attributes=True)


class BlockCreate(BaseModel):
    operator_id: str = Field(..., min_length=1)
    start_time: datetime
    end_time: datetime
    status: BlockStatus = BlockStatus.BLOCKED
    reason: Optional[str] = None


class BlockResponse(BaseModel):
    id: str
    spot_id: str
    start_time: datetime
    end_time: datetime
    status: BlockStatus
    reason: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DraftCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    spot_id: str = Field(..., min_length=1)
    date: date
    slot_starts: List[str] = Field(..., min_length=1)
    vehicle_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None

    @field_validator('slot_starts')
    def strip_slot_starts(cls, v):  # pylint: disable=no-self-argument
        return [s.strip() for s in v]


class DraftResponse(BaseModel):
    id: str
    user_id: str
    spot_id: str
    date: date
    slot_starts: List[str]
    vehicle_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingCreate(BaseModel):
    draft_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    vehicle_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None


class DailyBookingCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    spot_id: str = Field(..., min_length=1)
    vehicle_id: str = Field(..., min_length=1)
    days: List[date] = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.QR_CODE


class MonthlyBookingCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    spot_id: str = Field(..., min_length=1)
    vehicle_id: str = Field(..., min_length=1)
    start_date: date
    months: int = Field(1, ge=1, le=12)
    payment_method: PaymentMethod = PaymentMethod.QR_CODE


class BookingResponse(BaseModel):
    id: str
    user_id: str
    spot_id: str
    vehicle_id: str
    start_time: datetime
    end_time: datetime
    total_cost: float
    status: BookingStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    booking_type: BookingType = BookingType.HOURLY
    qr_code: str
    pin: str
    confirmed_at: Optional[datetime] = None
    entered_at: Optional[datetime] = None
    exited_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CancelRequest(BaseModel):
    actor_id: str = Field(..., min_length=1)


class QrPayloadResponse(BaseModel):
    booking_id: str
    payload: str


class PaymentSlipCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    image_url: str = Field(..., min_length=1)
    ocr_text: Optional[str] = None


class VerificationResult(BaseModel):
    verified: bool
    confidence: float
    notes: str


class PaymentSlipResponse(BaseModel):
    id: str
    booking_id: str
    image_url: str
    status: SlipStatus
    ocr_confidence: Optional[float] = None
    ocr_verification: Optional[bool] = None
    notes: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SlipUploadResponse(BaseModel):
    slip: PaymentSlipResponse
    verification: VerificationResult


class VerifyRequest(BaseModel):
    payment_slip_id: str = Field(..., alias="paymentSlipId")
    booking_id: str = Field(..., alias="bookingId")

    model_config = ConfigDict(populate_by_name=True)


class SlipDecision(BaseModel):
    operator_id: str = Field(..., min_length=1)
    approved: bool


class ScanRequest(BaseModel):
    code: str = Field(..., min_length=1)
    operator_id: str = Field(..., min_length=1)
    spot_id: Optional[str] = None

    @field_validator('code')
    def strip_code(cls, v):  # pylint: disable=no-self-argument
        return v.strip()


class ScanResponse(BaseModel):
    action: ScanAction
    message: str
    available_slots: int
    booking: BookingResponse

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    error: str
    detail: str
    retryable: bool = False
