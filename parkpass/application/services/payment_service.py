import asyncio
from datetime import datetime
from typing import List, Optional, Tuple
from loguru import logger

from parkpass.application.ports import AbstractOCRProvider
from parkpass.application.repositories import AbstractPaymentSlipRepository
from parkpass.application.services.booking_service import BookingService
from parkpass.config.settings_env import settings
from parkpass.domain.common import BookingStatus, PaymentStatus, SlipStatus
from parkpass.domain.entities import PaymentSlip
from parkpass.domain.exceptions import AccessDenied, InvalidTransition, NotFound, VerificationInconclusive
from parkpass.domain.verification import VerificationVerdict, verify_payment_text
from parkpass.shared.utils import utcnow


class PaymentService:
    def __init__(
        self,
        payment_slip_repo: AbstractPaymentSlipRepository,
        booking_service: BookingService,
        ocr_provider: Optional[AbstractOCRProvider] = None,
        ocr_timeout: Optional[float] = None,
    ):
        self.payment_slip_repo = payment_slip_repo
        self.booking_service = booking_service
        self.ocr_provider = ocr_provider
        self.ocr_timeout = settings.OCR_TIMEOUT_SECONDS if ocr_timeout is None else ocr_timeout

    async def submit_slip(
        self,
        booking_id: str,
        user_id: str,
        image_url: str,
        ocr_text: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[PaymentSlip, VerificationVerdict]:
        """Store an uploaded slip and try to verify it straight away."""
        booking = await self.booking_service.get_booking(booking_id)
        if booking.user_id != user_id:
            raise AccessDenied("You do not have access to this booking")
        if booking.status != BookingStatus.PENDING or booking.payment_status != PaymentStatus.PENDING:
            raise InvalidTransition(booking.status.value, "pay for")

        slip = await self.payment_slip_repo.add(PaymentSlip(booking_id=booking_id, image_url=image_url, ocr_text=ocr_text))
        logger.info(f"Payment slip {slip.id} uploaded for booking {booking_id}")
        verdict = await self.verify_slip(slip.id, booking_id, now=now)
        return await self.get_slip(slip.id), verdict

    async def get_slip(self, slip_id: str) -> PaymentSlip:
        slip = await self.payment_slip_repo.get_by_id(slip_id)
        if slip is None:
            raise NotFound(f"Payment slip {slip_id} not found")
        return slip

    async def verify_slip(self, slip_id: str, booking_id: str, now: Optional[datetime] = None) -> VerificationVerdict:
        """Run OCR verification; a verified slip confirms its booking, anything else waits for an operator."""
        slip = await self.get_slip(slip_id)
        if slip.booking_id != booking_id:
            raise NotFound(f"Payment slip {slip_id} does not belong to booking {booking_id}")
        if slip.status != SlipStatus.PENDING:
            raise InvalidTransition(slip.status.value, "verify a payment slip")
        booking = await self.booking_service.get_booking(booking_id)

        text = await self._read_text(slip)
        verdict = verify_payment_text(text, booking.total_cost)

        try:
            verdict.raise_if_inconclusive()
        except VerificationInconclusive as pending:
            logger.info(
                f"Slip {slip.id} left for manual review (confidence {pending.confidence}): {pending.message}"
            )
        else:
            await self.booking_service.confirm_payment(booking.id, now=now)
            slip.status = SlipStatus.VERIFIED
            slip.verified_at = now or utcnow()

        slip.ocr_text = text or slip.ocr_text
        slip.ocr_confidence = verdict.confidence
        slip.ocr_verification = verdict.verified
        slip.notes = verdict.notes
        await self.payment_slip_repo.update(slip)
        if slip.status != SlipStatus.PENDING:
            await self._retire_other_slips(slip)
        return verdict

    async def _read_text(self, slip: PaymentSlip) -> str:
        if self.ocr_provider is None:
            return slip.ocr_text or ""
        try:
            return await asyncio.wait_for(self.ocr_provider.extract_text(slip.image_url), timeout=self.ocr_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"OCR timed out after {self.ocr_timeout}s for slip {slip.id}")
        except Exception as e:
            logger.error(f"OCR failed for slip {slip.id}: {e}")
        return ""

    async def decide_slip(
        self, slip_id: str, operator_id: str, approved: bool, now: Optional[datetime] = None
    ) -> PaymentSlip:
        """Operator approval or rejection of a slip that OCR could not settle."""
        now = now or utcnow()
        slip = await self.get_slip(slip_id)
        if slip.status != SlipStatus.PENDING:
            raise InvalidTransition(slip.status.value, "decide on a payment slip")

        booking = await self.booking_service.get_booking(slip.booking_id)
        spot = await self.booking_service.availability.get_spot(booking.spot_id)
        if spot.owner_id != operator_id:
            raise AccessDenied("Only the spot owner can review this payment")

        if approved:
            await self.booking_service.confirm_payment(booking.id, now=now)
            slip.status = SlipStatus.VERIFIED
            slip.notes = "Payment approved by the spot owner."
        else:
            await self.booking_service.reject_payment(booking.id, now=now)
            slip.status = SlipStatus.REJECTED
            slip.notes = "Payment rejected by the spot owner."
        slip.verified_by = operator_id
        slip.verified_at = now

        logger.info(f"Slip {slip_id} {'approved' if approved else 'rejected'} by {operator_id}")
        slip = await self.payment_slip_repo.update(slip)
        await self._retire_other_slips(slip)
        return slip

    async def list_pending_slips(self, operator_id: str) -> List[PaymentSlip]:
        return await self.payment_slip_repo.get_pending_for_owner(operator_id)

    async def _retire_other_slips(self, decided: PaymentSlip) -> None:
        retired = await self.payment_slip_repo.supersede_pending(decided.booking_id, decided.id)
        if retired:
            logger.info(f"{retired} other pending slip(s) for booking {decided.booking_id} superseded by {decided.id}")
