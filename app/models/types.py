"""
Standard type definitions for database models.

Provides consistent types for points, volumes and timestamps across all
models.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DECIMAL, DateTime
from sqlalchemy.types import TypeDecorator

from app.utils.datetime_utils import ensure_utc

# Standard points/volume type
# Precision: 18 digits total, 8 after decimal point
# Suitable for: trading points, bonus points, trade volume, fees
# Range: up to 9,999,999,999.99999999
PointsType = DECIMAL(18, 8)

# Multiplier/percentage type for strategy factors
# Precision: 10 digits total, 4 after decimal point
RateType = DECIMAL(10, 4)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored in UTC.

    PostgreSQL keeps tzinfo; SQLite returns naive values, which are
    re-attached to UTC on the way out so comparisons never mix naive
    and aware datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)
