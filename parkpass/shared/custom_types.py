import datetime
import json
from typing import Union

from sqlalchemy import DateTime, Text, TypeDecorator
from sqlalchemy.dialects.sqlite import DATETIME as SQLITE_DATETIME

from parkpass.domain.common import ALWAYS_OPEN

OperatingHoursValue = Union[str, dict, None]


class UTCDateTime(TypeDecorator):
    """Store timezone-aware datetimes as UTC and hand them back UTC-aware.

    SQLite has no timezone support, so values are written there as naive UTC.
    """
    impl = DateTime
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'sqlite':
            return dialect.type_descriptor(SQLITE_DATETIME())
        return dialect.type_descriptor(DateTime(timezone=True))

    def process_bind_param(self, value: datetime.datetime | None, dialect) -> datetime.datetime | None:
        if value is None:
            return None
        # Naive values are taken as local wall-clock time
        return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime.datetime | None, dialect) -> datetime.datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)


class JSONEncodedHours(TypeDecorator):
    """Operating hours column: a per-weekday mapping or the always-open sentinel.

    Mappings are stored as JSON text; the sentinel string is stored verbatim so
    rows written by other clients stay readable.
    """
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: OperatingHoursValue, dialect) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return json.dumps(value, sort_keys=True)

    def process_result_value(self, value: str | None, dialect) -> OperatingHoursValue:
        if value is None:
            return None
        if value == ALWAYS_OPEN:
            return value
        try:
            return json.loads(value)
        except ValueError:
            return value
