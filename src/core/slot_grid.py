"""
Taskflow — Slot Grid Generator.

Turns a reference date, a view mode (day/week) and the user's business-hours
configuration into the visible date range, the visible days and the ordered
time slots of the calendar grid.

No I/O: this module only transforms data. All range math happens on local
calendar dates; instants are produced only at the very end.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Literal
from zoneinfo import ZoneInfo

from src.config import settings
from src.data.models import BusinessHoursConfig, TimeSlot

logger = logging.getLogger(__name__)

ViewMode = Literal["day", "week"]
VIEW_MODES = ("day", "week")

_END_OF_DAY = time(23, 59, 59, 999000)


def local_timezone() -> tzinfo:
    """Return the configured local timezone (settings.TIMEZONE)."""
    return ZoneInfo(settings.TIMEZONE)


def normalize_date(reference: date | datetime, tz: tzinfo | None = None) -> date:
    """Reduce a reference date or instant to a naive local calendar day.

    Aware datetimes are converted to the local zone first so that an instant
    late in the evening UTC lands on the right local day.
    """
    if isinstance(reference, datetime):
        if reference.tzinfo is not None:
            return reference.astimezone(tz or local_timezone()).date()
        return reference.date()
    return reference


def _check_view_mode(view_mode: str) -> None:
    if view_mode not in VIEW_MODES:
        raise ValueError(f"Unknown view mode: {view_mode!r}")


def week_start(day: date) -> date:
    """Return the Sunday on or before `day`."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def compute_view_range(
    reference: date | datetime,
    view_mode: ViewMode,
    tz: tzinfo | None = None,
) -> tuple[datetime, datetime]:
    """Return the (start, end) instants covered by a day or week view.

    Day view covers 00:00:00.000 to 23:59:59.999 of the reference day. Week
    view starts on the Sunday on or before the reference day and ends six
    days later at 23:59:59.999. Both bounds are in the local timezone.
    """
    _check_view_mode(view_mode)
    tz = tz or local_timezone()
    day = normalize_date(reference, tz)

    if view_mode == "day":
        first = last = day
    else:
        first = week_start(day)
        last = first + timedelta(days=6)

    start = datetime.combine(first, time.min, tzinfo=tz)
    end = datetime.combine(last, _END_OF_DAY, tzinfo=tz)
    return start, end


def resolve_hours(config: BusinessHoursConfig, day_of_week: int) -> tuple[time, time]:
    """Pick the (start, end) business hours for a day of the week.

    `day_of_week` follows `date.weekday()`: Monday is 0, Saturday 5, Sunday 6.
    """
    if day_of_week >= 5:
        return config.weekend_start, config.weekend_end
    return config.weekday_start, config.weekday_end


def generate_slots(
    config: BusinessHoursConfig | None,
    reference: date | datetime,
) -> list[TimeSlot]:
    """Build the ordered time slots for the reference day.

    Slots run from the day type's start time up to (not including) its end
    time in steps of `slot_duration_minutes`. Returns an empty list when the
    configuration has not been loaded yet.
    """
    if config is None:
        return []

    day = normalize_date(reference)
    start, end = resolve_hours(config, day.weekday())
    step = config.slot_duration_minutes

    cursor = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute

    slots: list[TimeSlot] = []
    while cursor < end_minutes:
        hour, minute = divmod(cursor, 60)
        slots.append(TimeSlot(time=time(hour, minute), hour=hour, minute=minute))
        cursor += step
    return slots


def week_days(reference: date | datetime, view_mode: ViewMode) -> list[date]:
    """Return the visible days: just the reference day, or Sunday..Saturday."""
    _check_view_mode(view_mode)
    day = normalize_date(reference)
    if view_mode == "day":
        return [day]
    first = week_start(day)
    return [first + timedelta(days=i) for i in range(7)]


def shift_reference_date(
    reference: date | datetime, view_mode: ViewMode, direction: int
) -> date:
    """Move one view forward (direction > 0) or backward (direction < 0).

    Day view moves by one day, week view by seven.
    """
    _check_view_mode(view_mode)
    day = normalize_date(reference)
    step = 1 if view_mode == "day" else 7
    sign = 1 if direction > 0 else -1
    return day + timedelta(days=sign * step)


def today(tz: tzinfo | None = None) -> date:
    """Today's local calendar date, without a time component."""
    return datetime.now(tz or local_timezone()).date()
