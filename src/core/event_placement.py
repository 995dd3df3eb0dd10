"""
Taskflow — Event Placement Engine.

Maps time-ranged calendar events onto the slot grid: which events occupy a
slot, how fragments of the same task merge into one block, and how many
slots each block spans. Nothing here renders; callers get plain data.

Overlap is half-open everywhere: an event occupies a slot iff
event.start < slot_end and event.end > slot_start.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable

from src.core.slot_grid import ViewMode, generate_slots, local_timezone, week_days
from src.data.models import BusinessHoursConfig, CalendarEvent, TimeSlot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DisplayInfo:
    """How an event relates to one slot."""

    starts_in_slot: bool
    is_active: bool
    span_slots: int


@dataclass
class Placement:
    """An event to draw in a cell, `span_slots` rows tall."""

    event: CalendarEvent
    span_slots: int


@dataclass
class SlotCell:
    """One (day, slot) cell of the grid."""

    day: date
    events: list[CalendarEvent] = field(default_factory=list)
    placements: list[Placement] = field(default_factory=list)


@dataclass
class SlotRow:
    slot: TimeSlot
    cells: list[SlotCell] = field(default_factory=list)


@dataclass
class CalendarGrid:
    """Read model for a day or week view."""

    days: list[date]
    rows: list[SlotRow]
    slot_duration_minutes: int | None


def slot_window(
    day: date,
    slot: TimeSlot,
    slot_duration_minutes: int,
    tz: tzinfo | None = None,
) -> tuple[datetime, datetime]:
    """Return the [start, end) instants of a slot on a given local day."""
    start = datetime.combine(day, slot.time, tzinfo=tz or local_timezone())
    return start, start + timedelta(minutes=slot_duration_minutes)


def overlaps(
    start: datetime, end: datetime, window_start: datetime, window_end: datetime
) -> bool:
    """Check if [start, end) overlaps [window_start, window_end)."""
    return start < window_end and end > window_start


def events_for_slot(
    events: Iterable[CalendarEvent],
    day: date,
    slot: TimeSlot,
    slot_duration_minutes: int,
    tz: tzinfo | None = None,
) -> list[CalendarEvent]:
    """Return the events occupying a slot, with same-task fragments merged.

    Task-based events sharing a task_id collapse into one event spanning
    min(start)..max(end); every other field comes from the first-seen
    fragment. Merged task groups come first (in order of first occurrence),
    followed by the non-task events untouched.
    """
    window_start, window_end = slot_window(day, slot, slot_duration_minutes, tz)

    groups: dict[int, CalendarEvent] = {}
    others: list[CalendarEvent] = []
    for ev in events:
        if not overlaps(ev.start, ev.end, window_start, window_end):
            continue
        if not ev.is_task_based:
            others.append(ev)
            continue
        if ev.task_id is None:
            # A task block with no task cannot be grouped
            continue
        existing = groups.get(ev.task_id)
        if existing is None:
            groups[ev.task_id] = ev
        else:
            groups[ev.task_id] = replace(
                existing,
                start=min(existing.start, ev.start),
                end=max(existing.end, ev.end),
            )

    return [*groups.values(), *others]


def duration_minutes(event: CalendarEvent) -> int:
    """Event length rounded to the nearest minute (halves round up)."""
    seconds = (event.end - event.start).total_seconds()
    return math.floor(seconds / 60 + 0.5)


def slot_span(event: CalendarEvent, slot_duration_minutes: int) -> int:
    """Number of slots an event covers visually; never less than one."""
    return max(1, math.ceil(duration_minutes(event) / slot_duration_minutes))


def display_info(
    event: CalendarEvent,
    day: date,
    slot: TimeSlot,
    slot_duration_minutes: int,
    tz: tzinfo | None = None,
) -> DisplayInfo:
    window_start, window_end = slot_window(day, slot, slot_duration_minutes, tz)
    return DisplayInfo(
        starts_in_slot=window_start <= event.start < window_end,
        is_active=overlaps(event.start, event.end, window_start, window_end),
        span_slots=slot_span(event, slot_duration_minutes),
    )


def build_grid(
    config: BusinessHoursConfig | None,
    events: list[CalendarEvent],
    reference: date | datetime,
    view_mode: ViewMode,
    tz: tzinfo | None = None,
) -> CalendarGrid:
    """Lay every event out on the grid of the current view.

    Each cell lists the events occupying it. Its placements are what should
    actually be drawn: non-task events in every cell they touch, task-based
    blocks only in the cell where they start.
    """
    days = week_days(reference, view_mode)
    if config is None:
        return CalendarGrid(days=days, rows=[], slot_duration_minutes=None)

    tz = tz or local_timezone()
    step = config.slot_duration_minutes
    rows: list[SlotRow] = []
    for slot in generate_slots(config, reference):
        row = SlotRow(slot=slot)
        for day in days:
            cell = SlotCell(day=day, events=events_for_slot(events, day, slot, step, tz))
            for ev in cell.events:
                info = display_info(ev, day, slot, step, tz)
                if ev.is_task_based and not info.starts_in_slot:
                    continue
                cell.placements.append(Placement(event=ev, span_slots=info.span_slots))
            row.cells.append(cell)
        rows.append(row)

    logger.debug(
        "Built %s grid: %d days x %d slots, %d events",
        view_mode, len(days), len(rows), len(events),
    )
    return CalendarGrid(days=days, rows=rows, slot_duration_minutes=step)
