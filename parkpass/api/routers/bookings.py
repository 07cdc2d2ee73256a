from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from parkpass.application.locks import spot_locks
from parkpass.application.services.access_service import AccessService
from parkpass.application.services.availability_service import AvailabilityService
from parkpass.application.services.booking_service import BookingService
from parkpass.application.services.payment_service import PaymentService
from parkpass.infrastructure.api.schemas.booking import (
    AvailabilityResponse, DraftCreate, DraftResponse, BookingCreate, BookingResponse,
    CancelRequest, QrPayloadResponse, PaymentSlipCreate, PaymentSlipResponse,
    SlipUploadResponse, VerificationResult, VerifyRequest, SlipDecision,
    ScanRequest, ScanResponse, SlotResponse, ErrorResponse, DayAvailabilityResponse,
    DayRangeAvailabilityResponse, SpotResponse, BlockCreate, BlockResponse, DailyBookingCreate,
    MonthlyBookingCreate,
)
from parkpass.infrastructure.notifications.notifier import LoguruNotifier
from parkpass.infrastructure.persistence.database import get_async_db
from parkpass.infrastructure.persistence.sqlalchemy_repositories import (
    SQLAlchemyParkingSpotRepository,
    SQLAlchemyVehicleRepository,
    SQLAlchemyBookingRepository,
    SQLAlchemyPaymentSlipRepository,
    SQLAlchemyDraftRepository,
    SQLAlchemyAvailabilityBlockRepository,
)
from parkpass.infrastructure.qr.qr_image import render_qr_png

router = APIRouter(
    prefix="/api/parking",
    tags=["parking"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)


def get_availability_service(db: AsyncSession = Depends(get_async_db)) -> AvailabilityService:
    return AvailabilityService(
        SQLAlchemyParkingSpotRepository(db),
        SQLAlchemyBookingRepository(db),
        block_repo=SQLAlchemyAvailabilityBlockRepository(db),
    )


def get_booking_service(db: AsyncSession = Depends(get_async_db)) -> BookingService:
    return BookingService(
        SQLAlchemyParkingSpotRepository(db),
        SQLAlchemyVehicleRepository(db),
        SQLAlchemyBookingRepository(db),
        SQLAlchemyDraftRepository(db),
        notifier=LoguruNotifier(),
        locks=spot_locks,
        block_repo=SQLAlchemyAvailabilityBlockRepository(db),
    )


def get_payment_service(
    db: AsyncSession = Depends(get_async_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentService:
    return PaymentService(SQLAlchemyPaymentSlipRepository(db), booking_service)


def get_access_service(db: AsyncSession = Depends(get_async_db)) -> AccessService:
    return AccessService(SQLAlchemyBookingRepository(db), SQLAlchemyParkingSpotRepository(db))


@router.get("/spots/{spot_id}/availability", response_model=AvailabilityResponse)
async def get_spot_availability(
    spot_id: str,
    target_date: date = Query(..., alias="date"),
    service: AvailabilityService = Depends(get_availability_service),
):
    slots = await service.get_availability(spot_id, target_date)
    return AvailabilityResponse(
        spot_id=spot_id,
        date=target_date,
        slots=[SlotResponse.model_validate(slot) for slot in slots],
    )


@router.get("/spots/{spot_id}/days", response_model=DayRangeAvailabilityResponse)
async def get_spot_day_availability(
    spot_id: str,
    start: date = Query(...),
    end: date = Query(...),
    service: AvailabilityService = Depends(get_availability_service),
):
    days = await service.get_day_availability(spot_id, start, end)
    return DayRangeAvailabilityResponse(
        spot_id=spot_id,
        start=start,
        end=end,
        days=[DayAvailabilityResponse.model_validate(day) for day in days],
    )


@router.get("/owners/{owner_id}/spots", response_model=List[SpotResponse])
async def list_owner_spots(owner_id: str, service: AvailabilityService = Depends(get_availability_service)):
    return await service.list_owner_spots(owner_id)


@router.post("/spots/{spot_id}/blocks", response_model=BlockResponse, status_code=201)
async def block_spot_time(
    spot_id: str, block_data: BlockCreate, service: AvailabilityService = Depends(get_availability_service)
):
    return await service.block_time(
        spot_id,
        block_data.operator_id,
        block_data.start_time,
        block_data.end_time,
        status=block_data.status,
        reason=block_data.reason,
    )


@router.get("/spots/{spot_id}/blocks", response_model=List[BlockResponse])
async def list_spot_blocks(spot_id: str, service: AvailabilityService = Depends(get_availability_service)):
    return await service.list_blocks(spot_id)


@router.delete("/spots/{spot_id}/blocks/{block_id}", status_code=204)
async def remove_spot_block(
    spot_id: str,
    block_id: str,
    operator_id: str = Query(...),
    service: AvailabilityService = Depends(get_availability_service),
):
    await service.remove_block(spot_id, block_id, operator_id)
    return Response(status_code=204)


@router.post("/drafts", response_model=DraftResponse, status_code=201)
async def save_draft(draft_data: DraftCreate, service: BookingService = Depends(get_booking_service)):
    return await service.save_draft(
        draft_data.user_id,
        draft_data.spot_id,
        draft_data.date,
        draft_data.slot_starts,
        vehicle_id=draft_data.vehicle_id,
        payment_method=draft_data.payment_method,
    )


@router.get("/drafts/{draft_id}", response_model=DraftResponse)
async def get_draft(draft_id: str, user_id: str = Query(...), service: BookingService = Depends(get_booking_service)):
    return await service.get_draft(draft_id, user_id)


@router.post("/bookings", response_model=BookingResponse, status_code=201)
async def create_booking(booking_data: BookingCreate, service: BookingService = Depends(get_booking_service)):
    return await service.create_booking_from_draft(
        booking_data.draft_id,
        booking_data.user_id,
        vehicle_id=booking_data.vehicle_id,
        payment_method=booking_data.payment_method,
    )


@router.post("/bookings/daily", response_model=BookingResponse, status_code=201)
async def create_daily_booking(
    booking_data: DailyBookingCreate, service: BookingService = Depends(get_booking_service)
):
    return await service.create_daily_booking(
        booking_data.user_id,
        booking_data.spot_id,
        booking_data.vehicle_id,
        booking_data.days,
        payment_method=booking_data.payment_method,
    )


@router.post("/bookings/monthly", response_model=BookingResponse, status_code=201)
async def create_monthly_booking(
    booking_data: MonthlyBookingCreate, service: BookingService = Depends(get_booking_service)
):
    return await service.create_monthly_booking(
        booking_data.user_id,
        booking_data.spot_id,
        booking_data.vehicle_id,
        booking_data.start_date,
        booking_data.months,
        payment_method=booking_data.payment_method,
    )


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: str, user_id: str = Query(...), service: BookingService = Depends(get_booking_service)):
    return await service.get_booking_for(booking_id, user_id)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str, cancel_data: CancelRequest, service: BookingService = Depends(get_booking_service)
):
    return await service.cancel_booking(booking_id, cancel_data.actor_id)


@router.get("/bookings/{booking_id}/qr", response_model=QrPayloadResponse)
async def get_booking_qr(booking_id: str, user_id: str = Query(...), service: BookingService = Depends(get_booking_service)):
    payload = await service.qr_payload(booking_id, user_id)
    return QrPayloadResponse(booking_id=booking_id, payload=payload)


@router.get("/bookings/{booking_id}/qr.png")
async def get_booking_qr_png(booking_id: str, user_id: str = Query(...), service: BookingService = Depends(get_booking_service)):
    payload = await service.qr_payload(booking_id, user_id)
    return Response(content=render_qr_png(payload), media_type="image/png")


@router.post("/bookings/{booking_id}/payment-slips", response_model=SlipUploadResponse, status_code=201)
async def upload_payment_slip(
    booking_id: str, slip_data: PaymentSlipCreate, service: PaymentService = Depends(get_payment_service)
):
    slip, verdict = await service.submit_slip(
        booking_id, slip_data.user_id, slip_data.image_url, ocr_text=slip_data.ocr_text
    )
    return SlipUploadResponse(slip=PaymentSlipResponse.model_validate(slip), verification=verdict.to_dict())


@router.post("/payment-slips/verify", response_model=VerificationResult)
async def verify_payment_slip(verify_data: VerifyRequest, service: PaymentService = Depends(get_payment_service)):
    verdict = await service.verify_slip(verify_data.payment_slip_id, verify_data.booking_id)
    return verdict.to_dict()


@router.get("/payment-slips/pending", response_model=List[PaymentSlipResponse])
async def list_pending_slips(operator_id: str = Query(...), service: PaymentService = Depends(get_payment_service)):
    return await service.list_pending_slips(operator_id)


@router.post("/payment-slips/{slip_id}/decision", response_model=PaymentSlipResponse)
async def decide_payment_slip(
    slip_id: str, decision: SlipDecision, service: PaymentService = Depends(get_payment_service)
):
    return await service.decide_slip(slip_id, decision.operator_id, decision.approved)


@router.post("/scan", response_model=ScanResponse)
async def scan_code(scan_data: ScanRequest, service: AccessService = Depends(get_access_service)):
    result = await service.scan(scan_data.code, scan_data.operator_id, spot_id=scan_data.spot_id)
    return ScanResponse(
        action=result.action,
        message=result.message,
        available_slots=result.available_slots,
        booking=BookingResponse.model_validate(result.booking),
    )
