from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from parkpass.domain.common import BookingStatus
from parkpass.domain.drafts import DraftBooking
from parkpass.domain.entities import AvailabilityBlock, Vehicle, ParkingSpot, Booking, PaymentSlip


class AbstractParkingSpotRepository(ABC):
    @abstractmethod
    async def get_by_id(self, spot_id: str) -> Optional[ParkingSpot]:
        pass

    @abstractmethod
    async def add(self, spot: ParkingSpot) -> ParkingSpot:
        pass

    @abstractmethod
    async def get_by_owner(self, owner_id: str) -> List[ParkingSpot]:
        pass


class AbstractVehicleRepository(ABC):
    @abstractmethod
    async def get_by_id(self, vehicle_id: str) -> Optional[Vehicle]:
        pass

    @abstractmethod
    async def add(self, vehicle: Vehicle) -> Vehicle:
        pass


class AbstractBookingRepository(ABC):
    @abstractmethod
    async def get_by_id(self, booking_id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def get_by_qr_code(self, qr_code: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def find_by_pin(self, pin: str, owner_id: str, spot_id: Optional[str] = None) -> List[Booking]:
        """Bookings with this PIN at spots of ``owner_id``, newest first."""

    @abstractmethod
    async def get_live_overlapping(self, spot_id: str, start: datetime, end: datetime) -> List[Booking]:
        """Bookings still holding capacity whose interval overlaps ``[start, end)``."""

    @abstractmethod
    async def add(self, booking: Booking) -> Booking:
        pass

    @abstractmethod
    async def transition(self, booking_id: str, expected: BookingStatus, new: BookingStatus, **values) -> Optional[Booking]:
        """Move the booking to ``new`` only if it is still ``expected``; None if it was not."""

    @abstractmethod
    async def transition_with_capacity(
        self, booking_id: str, expected: BookingStatus, new: BookingStatus, capacity_delta: int, **values
    ) -> Optional[Booking]:
        """Status change and spot counter change in one transaction.

        Raises CapacityConflict if the counter would leave ``[0, total_slots]``.
        """


class AbstractPaymentSlipRepository(ABC):
    @abstractmethod
    async def get_by_id(self, slip_id: str) -> Optional[PaymentSlip]:
        pass

    @abstractmethod
    async def add(self, slip: PaymentSlip) -> PaymentSlip:
        pass

    @abstractmethod
    async def update(self, slip: PaymentSlip) -> PaymentSlip:
        pass

    @abstractmethod
    async def get_pending_for_owner(self, owner_id: str) -> List[PaymentSlip]:
        """Pending slips at the owner's spots, highest OCR confidence first."""

    @abstractmethod
    async def supersede_pending(self, booking_id: str, keep_slip_id: str) -> int:
        """Retire the booking's other pending slips once one has been decided."""


class AbstractDraftRepository(ABC):
    @abstractmethod
    async def add(self, draft: DraftBooking) -> DraftBooking:
        pass

    @abstractmethod
    async def get_by_id(self, draft_id: str) -> Optional[DraftBooking]:
        pass

    @abstractmethod
    async def delete(self, draft_id: str) -> None:
        pass

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        pass


class AbstractAvailabilityBlockRepository(ABC):
    @abstractmethod
    async def add(self, block: AvailabilityBlock) -> AvailabilityBlock:
        pass

    @abstractmethod
    async def get_by_id(self, block_id: str) -> Optional[AvailabilityBlock]:
        pass

    @abstractmethod
    async def get_overlapping(self, spot_id: str, start: datetime, end: datetime) -> List[AvailabilityBlock]:
        pass

    @abstractmethod
    async def get_upcoming(self, spot_id: str, now: datetime) -> List[AvailabilityBlock]:
        """Blocks that have not ended yet, earliest first."""

    @abstractmethod
    async def delete(self, block_id: str) -> None:
        pass
