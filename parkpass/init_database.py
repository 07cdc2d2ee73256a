"""Initialize the ParkPass database."""
import argparse
import asyncio

from parkpass.application.services.booking_service import BookingService
from parkpass.infrastructure.persistence.database import AsyncSessionLocal, init_db
from parkpass.infrastructure.persistence.sqlalchemy_repositories import (
    SQLAlchemyParkingSpotRepository,
    SQLAlchemyVehicleRepository,
    SQLAlchemyBookingRepository,
    SQLAlchemyDraftRepository,
)


async def purge_expired_drafts(session_maker=AsyncSessionLocal, now=None) -> int:
    """Delete booking drafts whose time to live has run out."""
    async with session_maker() as session:
        service = BookingService(
            SQLAlchemyParkingSpotRepository(session),
            SQLAlchemyVehicleRepository(session),
            SQLAlchemyBookingRepository(session),
            SQLAlchemyDraftRepository(session),
        )
        return await service.purge_expired_drafts(now)


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed-demo", action="store_true", help="Add two demo parking spots to an empty database")
    parser.add_argument("--purge-drafts", action="store_true", help="Delete booking drafts that have expired")
    args = parser.parse_args(argv)

    print("Initializing parking database...")
    init_db(seed_demo=args.seed_demo)
    if args.purge_drafts:
        removed = asyncio.run(purge_expired_drafts())
        print(f"Removed {removed} expired drafts")
    print("Database initialization complete!")


if __name__ == "__main__":
    main()
