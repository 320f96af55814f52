#!/usr/bin/env python3
"""
Time slot alignment for update timestamps and historical filenames.

The current time is converted to the reporting timezone first and only then
floored to the greatest schedule hour at or before the local hour. When the
local hour precedes every schedule entry, the first entry of the same local
day is used. Two invocations inside one schedule window therefore produce
identical timestamps and labels.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Tuple

import pytz
from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE_HOURS = (0, 8, 12, 16, 20)
DEFAULT_TIMEZONE = 'Asia/Seoul'

LABEL_FORMAT = '%Y-%m-%dT%H-%M-%S%z'


def validate_schedule(schedule_hours: Iterable[int]) -> Tuple[int, ...]:
    """Return the schedule sorted and deduplicated; reject hours outside 0..23."""
    hours = sorted({int(hour) for hour in schedule_hours})
    if not hours:
        raise ValueError("schedule must contain at least one hour")
    if hours[0] < 0 or hours[-1] > 23:
        raise ValueError(f"schedule hours must be within 0..23, got {hours}")
    return tuple(hours)


def parse_now(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 override for the current time; naive values are UTC."""
    if not value:
        return None
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed


def slot_label(slot: datetime) -> str:
    """Filename-safe rendering of an aligned slot, e.g. 2026-10-18T12-00-00+0900."""
    return slot.strftime(LABEL_FORMAT)


@dataclass(frozen=True)
class TimeSlotAligner:
    """Snaps times down to the nearest boundary of a fixed daily schedule."""
    schedule_hours: Tuple[int, ...] = DEFAULT_SCHEDULE_HOURS
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        object.__setattr__(self, 'schedule_hours', validate_schedule(self.schedule_hours))
        pytz.timezone(self.timezone)  # raises UnknownTimeZoneError early

    @property
    def tz(self):
        return pytz.timezone(self.timezone)

    def aligned_slot(self, now: Optional[datetime] = None) -> datetime:
        """Aligned slot start as an aware datetime in the reporting timezone."""
        if now is None:
            now = datetime.now(pytz.utc)
        elif now.tzinfo is None:
            now = pytz.utc.localize(now)

        zone = self.tz
        local = now.astimezone(zone)

        earlier = [hour for hour in self.schedule_hours if hour <= local.hour]
        hour = earlier[-1] if earlier else self.schedule_hours[0]

        naive = local.replace(tzinfo=None, hour=hour, minute=0, second=0, microsecond=0)
        return zone.localize(naive)

    def aligned_timestamp(self, now: Optional[datetime] = None) -> Tuple[str, str]:
        """ISO-8601 timestamp and slot label for the slot containing now."""
        slot = self.aligned_slot(now)
        return slot.isoformat(), slot_label(slot)


def aligned_timestamp(now: Optional[datetime] = None,
                      schedule_hours: Iterable[int] = DEFAULT_SCHEDULE_HOURS,
                      timezone: str = DEFAULT_TIMEZONE) -> Tuple[str, str]:
    """Convenience wrapper around TimeSlotAligner.aligned_timestamp."""
    return TimeSlotAligner(tuple(schedule_hours), timezone).aligned_timestamp(now)
