from decimal import Decimal
import os

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from parkpass.config.settings_env import settings
from parkpass.domain.common import ALWAYS_OPEN
from parkpass.infrastructure.persistence.models.models import Base

DATABASE_URL = settings.DATABASE_URL
ASYNC_DATABASE_URL = settings.ASYNC_DATABASE_URL

# Ensure we're using absolute paths for SQLite files
if DATABASE_URL.startswith("sqlite:///./"):
    db_path = os.path.abspath(DATABASE_URL.removeprefix("sqlite:///./"))
    DATABASE_URL = f"sqlite:///{db_path}"
    ASYNC_DATABASE_URL = f"sqlite+aiosqlite:///{db_path}"

# Sync engine for initialization
engine = create_engine(DATABASE_URL, connect_args={
                       "check_same_thread": False} if "sqlite" in DATABASE_URL else {})

# Async engine for application
async_engine = create_async_engine(ASYNC_DATABASE_URL, echo=False)
AsyncSessionLocal = async_sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False)


async def get_async_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


DEMO_OWNER_ID = "00000000-0000-0000-0000-000000000001"


def init_db(seed_demo: bool = False):
    logger.info(f"Initializing database at: {DATABASE_URL}")
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Tables created")

    if not seed_demo:
        return

    from sqlalchemy.orm import Session
    from parkpass.infrastructure.persistence.models.models import ParkingSpot

    with Session(engine) as session:
        if session.query(ParkingSpot).count() == 0:
            weekdays = {
                day: {"isOpen": True, "openTime": "08:00", "closeTime": "20:00"}
                for day in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
            }
            weekdays["Saturday"] = {"isOpen": True, "is24Hours": True}
            weekdays["Sunday"] = {"isOpen": False}
            session.add_all([
                ParkingSpot(
                    owner_id=DEMO_OWNER_ID,
                    name="Central Lot",
                    total_slots=5,
                    available_slots=5,
                    price=Decimal("20"),
                    daily_price=Decimal("150"),
                    operating_hours=weekdays,
                ),
                ParkingSpot(
                    owner_id=DEMO_OWNER_ID,
                    name="Station Garage",
                    total_slots=10,
                    available_slots=10,
                    price=Decimal("30"),
                    operating_hours=ALWAYS_OPEN,
                ),
            ])
            session.commit()
            logger.info("Created 2 demo parking spots")
