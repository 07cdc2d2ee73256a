from .abstract_repositories import (
    AbstractParkingSpotRepository,
    AbstractVehicleRepository,
    AbstractBookingRepository,
    AbstractPaymentSlipRepository,
    AbstractDraftRepository,
    AbstractAvailabilityBlockRepository,
)

__all__ = [
    "AbstractParkingSpotRepository",
    "AbstractVehicleRepository",
    "AbstractBookingRepository",
    "AbstractPaymentSlipRepository",
    "AbstractDraftRepository",
    "AbstractAvailabilityBlockRepository",
]
