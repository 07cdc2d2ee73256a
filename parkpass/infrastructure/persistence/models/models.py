import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Numeric, Float, Boolean, Date, Text, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import declarative_base, relationship
from parkpass.shared.custom_types import UTCDateTime, JSONEncodedHours

Base = declarative_base()


def _uuid():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


class ParkingSpot(Base):
    __tablename__ = "parking_spots"
    __table_args__ = (
        CheckConstraint("available_slots >= 0 AND available_slots <= total_slots", name="ck_spot_capacity"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False, index=True)
    name = Column(String, nullable=False)
    total_slots = Column(Integer, nullable=False, default=1)
    available_slots = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False)
    daily_price = Column(Numeric(10, 2), nullable=True)
    monthly_price = Column(Numeric(10, 2), nullable=True)
    operating_hours = Column(JSONEncodedHours, nullable=True)  # weekday map or "24/7 Access"
    created_at = Column(UTCDateTime, default=_now)

    bookings = relationship("Booking", back_populates="spot")
    availability_blocks = relationship("AvailabilityBlock", back_populates="spot")


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    license_plate = Column(String, nullable=False, index=True)
    make = Column(String, nullable=False)
    model = Column(String, nullable=False)
    color = Column(String, nullable=False)
    created_at = Column(UTCDateTime, default=_now)

    bookings = relationship("Booking", back_populates="vehicle")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_booking_interval"),
        Index("ix_bookings_spot_interval", "spot_id", "start_time", "end_time"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    spot_id = Column(String(36), ForeignKey("parking_spots.id"), nullable=False)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    total_cost = Column(Numeric(10, 2), nullable=False)
    status = Column(String, default="pending", nullable=False, index=True)  # pending, confirmed, active, completed, cancelled
    payment_method = Column(String, default="qr_code", nullable=False)  # qr_code, bank_transfer
    payment_status = Column(String, default="pending", nullable=False)  # pending, verified, rejected
    booking_type = Column(String, default="hourly", nullable=False)  # hourly, daily, monthly
    qr_code = Column(String, unique=True, nullable=False, index=True)
    pin = Column(String(4), nullable=False, index=True)
    confirmed_at = Column(UTCDateTime, nullable=True)
    entered_at = Column(UTCDateTime, nullable=True)
    exited_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=_now, nullable=False)
    updated_at = Column(UTCDateTime, default=_now, onupdate=_now, nullable=False)

    spot = relationship("ParkingSpot", back_populates="bookings")
    vehicle = relationship("Vehicle", back_populates="bookings")
    payment_slips = relationship("PaymentSlip", back_populates="booking")

    @property
    def duration_hours(self):
        return (self.end_time - self.start_time).total_seconds() / 3600

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "spot_id": self.spot_id,
            "vehicle_id": self.vehicle_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "total_cost": str(self.total_cost),
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "booking_type": self.booking_type,
            "qr_code": self.qr_code,
            "pin": self.pin,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class PaymentSlip(Base):
    __tablename__ = "payment_slips"

    id = Column(String(36), primary_key=True, default=_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    image_url = Column(String, nullable=False)
    status = Column(String, default="pending", nullable=False)  # pending, verified, rejected, superseded
    ocr_text = Column(Text, nullable=True)
    ocr_confidence = Column(Float, nullable=True)
    ocr_verification = Column(Boolean, nullable=True)
    notes = Column(String, nullable=True)
    verified_by = Column(String(36), nullable=True)
    verified_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=_now, nullable=False)

    booking = relationship("Booking", back_populates="payment_slips")


class BookingDraft(Base):
    __tablename__ = "booking_drafts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    spot_id = Column(String(36), ForeignKey("parking_spots.id"), nullable=False)
    date = Column(Date, nullable=False)
    slot_starts = Column(Text, nullable=False)  # JSON list of HH:MM
    vehicle_id = Column(String(36), nullable=True)
    payment_method = Column(String, nullable=True)
    created_at = Column(UTCDateTime, default=_now, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False, index=True)


class AvailabilityBlock(Base):
    __tablename__ = "parking_availability"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_block_interval"),
        Index("ix_parking_availability_spot_interval", "spot_id", "start_time", "end_time"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    spot_id = Column(String(36), ForeignKey("parking_spots.id"), nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    status = Column(String, default="blocked", nullable=False)  # blocked, maintenance
    reason = Column(String, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(UTCDateTime, default=_now, nullable=False)

    spot = relationship("ParkingSpot", back_populates="availability_blocks")
