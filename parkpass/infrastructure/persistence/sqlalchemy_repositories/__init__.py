from .sqlalchemy_repositories import (
    SQLAlchemyParkingSpotRepository,
    SQLAlchemyVehicleRepository,
    SQLAlchemyBookingRepository,
    SQLAlchemyPaymentSlipRepository,
    SQLAlchemyDraftRepository,
    SQLAlchemyAvailabilityBlockRepository,
)

__all__ = [
    "SQLAlchemyParkingSpotRepository",
    "SQLAlchemyVehicleRepository",
    "SQLAlchemyBookingRepository",
    "SQLAlchemyPaymentSlipRepository",
    "SQLAlchemyDraftRepository",
    "SQLAlchemyAvailabilityBlockRepository",
]
