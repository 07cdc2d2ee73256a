from datetime import date, datetime, timedelta, tzinfo
from typing import List, Optional
from loguru import logger

from parkpass.application.repositories import (
    AbstractParkingSpotRepository,
    AbstractBookingRepository,
    AbstractAvailabilityBlockRepository,
)
from parkpass.config.settings_env import settings
from parkpass.domain.common import BlockStatus
from parkpass.domain.entities import AvailabilityBlock, ParkingSpot
from parkpass.domain.exceptions import AccessDenied, InvalidSelection, NotFound
from parkpass.domain.scheduling import (
    MAX_RANGE_DAYS,
    DayAvailability,
    SlotAvailability,
    classify_days,
    classify_slots,
    date_range,
    day_bounds,
    slots_for_date,
)
from parkpass.shared.utils import local_timezone, utcnow


class AvailabilityService:
    def __init__(
        self,
        parking_spot_repo: AbstractParkingSpotRepository,
        booking_repo: AbstractBookingRepository,
        block_repo: Optional[AbstractAvailabilityBlockRepository] = None,
        tz: Optional[tzinfo] = None,
        min_remaining_minutes: Optional[int] = None,
    ):
        self.parking_spot_repo = parking_spot_repo
        self.booking_repo = booking_repo
        self.block_repo = block_repo
        self.tz = tz or local_timezone()
        self.min_remaining_minutes = (
            settings.MIN_REMAINING_MINUTES if min_remaining_minutes is None else min_remaining_minutes
        )

    async def get_spot(self, spot_id: str) -> ParkingSpot:
        spot = await self.parking_spot_repo.get_by_id(spot_id)
        if spot is None:
            raise NotFound(f"Parking spot {spot_id} not found")
        return spot

    async def get_owned_spot(self, spot_id: str, operator_id: str) -> ParkingSpot:
        spot = await self.get_spot(spot_id)
        if spot.owner_id != operator_id:
            raise AccessDenied("Only the spot owner can manage this parking spot")
        return spot

    async def list_owner_spots(self, owner_id: str) -> List[ParkingSpot]:
        return await self.parking_spot_repo.get_by_owner(owner_id)

    # Hourly slots

    async def get_availability(
        self, spot_id: str, target_date: date, now: Optional[datetime] = None
    ) -> List[SlotAvailability]:
        """Hourly slots of ``target_date`` with their status and current price."""
        spot = await self.get_spot(spot_id)
        return await self.classify_for_spot(spot, target_date, now or utcnow())

    async def classify_for_spot(self, spot: ParkingSpot, target_date: date, now: datetime) -> List[SlotAvailability]:
        slots = slots_for_date(spot.operating_hours, target_date)
        if not slots:
            logger.debug(f"Spot {spot.id} is closed on {target_date}")
            return []

        day_start, day_end = day_bounds(target_date, self.tz)
        bookings = await self.booking_repo.get_live_overlapping(spot.id, day_start, day_end)
        blocks = await self._blocks(spot.id, day_start, day_end)
        return classify_slots(
            slots,
            target_date,
            bookings,
            now=now,
            tz=self.tz,
            price=spot.price,
            min_remaining_minutes=self.min_remaining_minutes,
            blocks=blocks,
        )

    # Whole days

    async def get_day_availability(
        self, spot_id: str, first: date, last: date, now: Optional[datetime] = None
    ) -> List[DayAvailability]:
        """Status of every day from ``first`` to ``last`` inclusive, for day and month bookings."""
        if last < first:
            raise InvalidSelection("The end date must not be before the start date")
        days = date_range(first, last + timedelta(days=1))
        if len(days) > MAX_RANGE_DAYS:
            raise InvalidSelection(f"Ask for at most {MAX_RANGE_DAYS} days at a time")
        spot = await self.get_spot(spot_id)
        return await self.classify_days_for_spot(spot, days, now or utcnow())

    async def classify_days_for_spot(self, spot: ParkingSpot, days: List[date], now: datetime) -> List[DayAvailability]:
        if not days:
            return []
        start, _ = day_bounds(days[0], self.tz)
        _, end = day_bounds(days[-1], self.tz)
        bookings = await self.booking_repo.get_live_overlapping(spot.id, start, end)
        blocks = await self._blocks(spot.id, start, end)
        return classify_days(days, bookings, now=now, tz=self.tz, blocks=blocks)

    # Owner closures

    async def block_time(
        self,
        spot_id: str,
        operator_id: str,
        start_time: datetime,
        end_time: datetime,
        status: BlockStatus = BlockStatus.BLOCKED,
        reason: Optional[str] = None,
    ) -> AvailabilityBlock:
        """Take ``[start_time, end_time)`` out of sale. Naive times are read in the spot's timezone."""
        await self.get_owned_spot(spot_id, operator_id)
        start_time = self._localize(start_time)
        end_time = self._localize(end_time)
        if start_time >= end_time:
            raise InvalidSelection("The end time must be after the start time")

        existing = await self.booking_repo.get_live_overlapping(spot_id, start_time, end_time)
        if existing:
            logger.warning(
                f"Spot {spot_id} closed over {len(existing)} existing booking(s) "
                f"between {start_time.isoformat()} and {end_time.isoformat()}"
            )
        block = await self._require_block_repo().add(AvailabilityBlock(
            spot_id=spot_id,
            start_time=start_time,
            end_time=end_time,
            status=status,
            reason=reason,
            created_by=operator_id,
        ))
        logger.info(f"Spot {spot_id} {block.status.value} from {start_time.isoformat()} to {end_time.isoformat()}")
        return block

    async def list_blocks(self, spot_id: str, now: Optional[datetime] = None) -> List[AvailabilityBlock]:
        await self.get_spot(spot_id)
        return await self._require_block_repo().get_upcoming(spot_id, now or utcnow())

    async def remove_block(self, spot_id: str, block_id: str, operator_id: str) -> None:
        await self.get_owned_spot(spot_id, operator_id)
        block_repo = self._require_block_repo()
        block = await block_repo.get_by_id(block_id)
        if block is None or block.spot_id != spot_id:
            raise NotFound(f"Availability block {block_id} not found")
        await block_repo.delete(block_id)
        logger.info(f"Spot {spot_id} reopened, block {block_id} removed by {operator_id}")

    async def _blocks(self, spot_id: str, start: datetime, end: datetime) -> List[AvailabilityBlock]:
        if self.block_repo is None:
            return []
        return await self.block_repo.get_overlapping(spot_id, start, end)

    def _require_block_repo(self) -> AbstractAvailabilityBlockRepository:
        if self.block_repo is None:
            raise RuntimeError("AvailabilityService was created without an availability block repository")
        return self.block_repo

    def _localize(self, value: datetime) -> datetime:
        return value.replace(tzinfo=self.tz) if value.tzinfo is None else value
