import json
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from parkpass.domain.common import ALWAYS_OPEN
from parkpass.infrastructure.persistence.models.models import (
    AvailabilityBlock,
    Base,
    Booking,
    BookingDraft,
    ParkingSpot,
    PaymentSlip,
    Vehicle,
)

START = datetime(2030, 1, 7, 2, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db_session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def spot_and_vehicle(db_session):
    spot = ParkingSpot(owner_id="owner", name="Lot", total_slots=5, available_slots=5, price=Decimal("20"),
                       operating_hours=ALWAYS_OPEN)
    vehicle = Vehicle(user_id="driver", license_plate="ABC123", make="Toyota", model="Yaris", color="Red")
    db_session.add_all([spot, vehicle])
    db_session.commit()
    return spot, vehicle


def make_booking(spot, vehicle, **overrides):
    values = dict(
        user_id="driver",
        spot_id=spot.id,
        vehicle_id=vehicle.id,
        start_time=START,
        end_time=START + timedelta(hours=2),
        total_cost=Decimal("40"),
        qr_code="PK-0123456789AB",
        pin="4821",
    )
    values.update(overrides)
    return Booking(**values)


def test_vehicle_model(db_session):
    vehicle = Vehicle(user_id="driver", license_plate="TEST123", make="Ford", model="Focus", color="blue")
    db_session.add(vehicle)
    db_session.commit()
    db_session.refresh(vehicle)

    assert len(vehicle.id) == 36
    assert isinstance(vehicle.created_at, datetime)
    assert vehicle.created_at.tzinfo == timezone.utc


def test_parking_spot_model(spot_and_vehicle):
    spot, _ = spot_and_vehicle
    assert spot.id is not None
    assert spot.operating_hours == ALWAYS_OPEN
    assert spot.price == Decimal("20")


def test_parking_spot_capacity_constraint(db_session):
    db_session.add(ParkingSpot(owner_id="owner", name="Bad", total_slots=2, available_slots=3, price=Decimal("10")))
    with pytest.raises(IntegrityError):
        db_session.commit()


def test_booking_model(db_session, spot_and_vehicle):
    spot, vehicle = spot_and_vehicle
    booking = make_booking(spot, vehicle)
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)

    assert booking.status == "pending"
    assert booking.payment_status == "pending"
    assert booking.payment_method == "qr_code"
    assert booking.booking_type == "hourly"
    assert booking.start_time == START
    assert booking.duration_hours == 2
    assert booking.spot.name == "Lot"
    assert booking.vehicle.license_plate == "ABC123"

    data = booking.to_dict()
    assert data["total_cost"] == "40.00"
    assert data["pin"] == "4821"
    assert data["booking_type"] == "hourly"
    assert data["confirmed_at"] is None


def test_booking_interval_constraint(db_session, spot_and_vehicle):
    spot, vehicle = spot_and_vehicle
    db_session.add(make_booking(spot, vehicle, end_time=START))
    with pytest.raises(IntegrityError):
        db_session.commit()


def test_booking_qr_code_is_unique(db_session, spot_and_vehicle):
    spot, vehicle = spot_and_vehicle
    db_session.add(make_booking(spot, vehicle))
    db_session.commit()
    db_session.add(make_booking(spot, vehicle))
    with pytest.raises(IntegrityError):
        db_session.commit()


def test_payment_slip_model(db_session, spot_and_vehicle):
    spot, vehicle = spot_and_vehicle
    booking = make_booking(spot, vehicle)
    slip = PaymentSlip(booking=booking, image_url="slips/1.png")
    db_session.add_all([booking, slip])
    db_session.commit()
    db_session.refresh(slip)

    assert slip.status == "pending"
    assert slip.booking_id == booking.id
    assert booking.payment_slips == [slip]


def test_booking_draft_model(db_session, spot_and_vehicle):
    spot, _ = spot_and_vehicle
    draft = BookingDraft(
        user_id="driver",
        spot_id=spot.id,
        date=date(2030, 1, 7),
        slot_starts=json.dumps(["09:00", "10:00"]),
        expires_at=START + timedelta(hours=24),
    )
    db_session.add(draft)
    db_session.commit()
    db_session.refresh(draft)

    assert json.loads(draft.slot_starts) == ["09:00", "10:00"]
    assert draft.expires_at.tzinfo == timezone.utc


def test_availability_block_model(db_session, spot_and_vehicle):
    spot, _ = spot_and_vehicle
    block = AvailabilityBlock(spot_id=spot.id, start_time=START, end_time=START + timedelta(hours=3), reason="Repairs")
    db_session.add(block)
    db_session.commit()
    db_session.refresh(block)

    assert block.status == "blocked"
    assert block.end_time.tzinfo == timezone.utc
    assert spot.availability_blocks == [block]


def test_availability_block_interval_constraint(db_session, spot_and_vehicle):
    spot, _ = spot_and_vehicle
    db_session.add(AvailabilityBlock(spot_id=spot.id, start_time=START, end_time=START))
    with pytest.raises(IntegrityError):
        db_session.commit()
