"""
Local-time context for a call.

The night flag and day part are resolved once when a call session starts and
never change for the rest of that call.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from marta.config.constants import (
    AFTERNOON_START_HOUR,
    DAY_PART_AFTERNOON,
    DAY_PART_MORNING,
    DAY_PART_NIGHT,
    DEFAULT_TIMEZONE,
    NIGHT_END_HOUR,
    NIGHT_START_HOUR,
)


@dataclass(frozen=True)
class CallContext:
    now: datetime
    is_night: bool
    day_part: str


def is_night_window(hour: int) -> bool:
    """True between 22:00 and 08:00."""
    return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR


def day_part(hour: int) -> str:
    if NIGHT_END_HOUR <= hour < AFTERNOON_START_HOUR:
        return DAY_PART_MORNING
    if AFTERNOON_START_HOUR <= hour < NIGHT_START_HOUR:
        return DAY_PART_AFTERNOON
    return DAY_PART_NIGHT


def resolve_call_context(
    now: Optional[datetime] = None, timezone: str = DEFAULT_TIMEZONE
) -> CallContext:
    """
    Resolve the local time, night flag and day part.

    Args:
        now: Instant to resolve; aware datetimes are converted to ``timezone``,
            naive ones are taken as already local. Defaults to the current time.
        timezone: IANA time zone name of the business.
    """
    tz = ZoneInfo(timezone)
    if now is None:
        local = datetime.now(tz)
    elif now.tzinfo is None:
        local = now.replace(tzinfo=tz)
    else:
        local = now.astimezone(tz)
    return CallContext(
        now=local,
        is_night=is_night_window(local.hour),
        day_part=day_part(local.hour),
    )
