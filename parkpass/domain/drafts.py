import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from parkpass.domain.common import PaymentMethod


@dataclass(frozen=True)
class DraftBooking:
    """Slot selection a driver is still working on, kept server-side until it expires."""
    user_id: str
    spot_id: str
    date: date
    slot_starts: Tuple[str, ...]
    created_at: datetime
    expires_at: datetime
    vehicle_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def start(
        cls,
        user_id: str,
        spot_id: str,
        target_date: date,
        slot_starts,
        now: datetime,
        ttl: timedelta,
        vehicle_id: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None,
    ) -> "DraftBooking":
        return cls(
            user_id=user_id,
            spot_id=spot_id,
            date=target_date,
            slot_starts=tuple(slot_starts),
            created_at=now,
            expires_at=now + ttl,
            vehicle_id=vehicle_id,
            payment_method=payment_method,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

