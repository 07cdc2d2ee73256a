import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
import tempfile
import os
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

from parkpass.application.locks import SpotLockRegistry
from parkpass.application.ports import AbstractNotifier
from parkpass.application.services.access_service import AccessService
from parkpass.application.services.availability_service import AvailabilityService
from parkpass.application.services.booking_service import BookingService
from parkpass.application.services.payment_service import PaymentService
from parkpass.domain.entities import ParkingSpot, Vehicle
from parkpass.domain.scheduling import WEEKDAYS
from parkpass.infrastructure.persistence.models.models import Base
from parkpass.infrastructure.persistence.sqlalchemy_repositories import (
    SQLAlchemyParkingSpotRepository,
    SQLAlchemyVehicleRepository,
    SQLAlchemyBookingRepository,
    SQLAlchemyPaymentSlipRepository,
    SQLAlchemyDraftRepository,
    SQLAlchemyAvailabilityBlockRepository,
)

OWNER_ID = "owner-1"
DRIVER_ID = "driver-1"


@pytest.fixture(scope="function")
async def test_db():
    """Create a test database for each test function."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp_file:
        test_db_path = tmp_file.name

    # NullPool avoids sharing connections between tests
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{test_db_path}",
        poolclass=NullPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    yield async_session_maker

    await engine.dispose()
    os.unlink(test_db_path)


@pytest.fixture
async def db_session(test_db):
    """Create a database session for a test."""
    async with test_db() as session:
        yield session
        await session.rollback()


@pytest.fixture
def local_tz():
    """Fixed UTC+7 offset so tests do not depend on the host timezone."""
    return timezone(timedelta(hours=7))


@pytest.fixture
def booking_date():
    """A Monday well in the future."""
    return date(2030, 1, 7)


@pytest.fixture
def now():
    """Noon UTC the day before ``booking_date``: every slot is still in the future."""
    return datetime(2030, 1, 6, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def weekday_hours():
    return {day: {"isOpen": True, "openTime": "08:00", "closeTime": "20:00"} for day in WEEKDAYS}


@pytest.fixture
def spot_repo(db_session):
    return SQLAlchemyParkingSpotRepository(db_session)


@pytest.fixture
def vehicle_repo(db_session):
    return SQLAlchemyVehicleRepository(db_session)


@pytest.fixture
def booking_repo(db_session):
    return SQLAlchemyBookingRepository(db_session)


@pytest.fixture
def slip_repo(db_session):
    return SQLAlchemyPaymentSlipRepository(db_session)


@pytest.fixture
def draft_repo(db_session):
    return SQLAlchemyDraftRepository(db_session)


@pytest.fixture
def block_repo(db_session):
    return SQLAlchemyAvailabilityBlockRepository(db_session)


@pytest.fixture
def notifier():
    return AsyncMock(spec=AbstractNotifier)


@pytest.fixture
def availability_service(spot_repo, booking_repo, block_repo, local_tz):
    return AvailabilityService(spot_repo, booking_repo, block_repo=block_repo, tz=local_tz, min_remaining_minutes=30)


@pytest.fixture
def booking_service(spot_repo, vehicle_repo, booking_repo, draft_repo, block_repo, notifier, local_tz):
    """Create a BookingService with its own lock registry."""
    return BookingService(
        spot_repo,
        vehicle_repo,
        booking_repo,
        draft_repo,
        notifier=notifier,
        locks=SpotLockRegistry(),
        tz=local_tz,
        draft_ttl=timedelta(hours=24),
        pin_strategy="deterministic",
        block_repo=block_repo,
    )


@pytest.fixture
def payment_service(slip_repo, booking_service):
    return PaymentService(slip_repo, booking_service, ocr_timeout=1.0)


@pytest.fixture
def access_service(booking_repo, spot_repo):
    return AccessService(booking_repo, spot_repo)


@pytest.fixture
async def sample_spot(spot_repo, weekday_hours):
    """A five-slot spot open 08:00-20:00 every day at 20 per hour."""
    return await spot_repo.add(ParkingSpot(
        owner_id=OWNER_ID,
        name="Test Lot",
        total_slots=5,
        price=Decimal("20"),
        operating_hours=weekday_hours,
    ))


@pytest.fixture
async def sample_vehicle(vehicle_repo):
    return await vehicle_repo.add(Vehicle(
        user_id=DRIVER_ID,
        license_plate="abc 123 ",
        make="Toyota",
        model="Yaris",
        color="Red",
    ))


@pytest.fixture
async def pending_booking(booking_service, sample_spot, sample_vehicle, booking_date, now):
    """A two-hour booking 09:00-11:00 waiting for payment."""
    return await booking_service.create_booking(
        DRIVER_ID, sample_spot.id, sample_vehicle.id, booking_date, ["09:00", "10:00"], now=now
    )


@pytest.fixture
async def confirmed_booking(booking_service, pending_booking, now):
    return await booking_service.confirm_payment(pending_booking.id, now=now)
