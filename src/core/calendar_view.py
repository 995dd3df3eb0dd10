"""
Taskflow — Calendar view coordinator.

Holds the state of one calendar screen (reference date, day/week mode,
business hours, fetched events) and turns user intents into backend calls:
navigate, schedule a task onto a slot, quick-add a task "now", delete an
event. After every successful write the events of the visible range are
re-read from the backend; the core never invents event ids.

This module is provider-agnostic: it depends on the PersistencePort
protocol, not on a specific implementation.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import TYPE_CHECKING, Callable

from src.config import settings
from src.core.event_placement import CalendarGrid, build_grid
from src.core.slot_grid import (
    ViewMode,
    compute_view_range,
    generate_slots,
    local_timezone,
    normalize_date,
    shift_reference_date,
    today,
)

if TYPE_CHECKING:
    from src.data.models import BusinessHoursConfig, CalendarEvent, Task, TimeSlot
    from src.ports.persistence_port import PersistencePort

logger = logging.getLogger(__name__)


def task_duration_minutes(task: Task) -> int:
    """Scheduled length of a task block: its estimate, else the default."""
    return task.estimated_time_minutes or settings.DEFAULT_EVENT_MINUTES


def slot_block(
    day: date,
    slot: TimeSlot,
    duration_minutes: int,
    tz: tzinfo | None = None,
) -> tuple[datetime, datetime]:
    """Start/end of a task dropped on a slot: the slot time plus its duration."""
    start = datetime.combine(day, slot.time, tzinfo=tz or local_timezone())
    return start, start + timedelta(minutes=duration_minutes)


def quick_add_block(
    now: datetime,
    duration_minutes: int,
    round_minutes: int | None = None,
) -> tuple[datetime, datetime]:
    """Start/end of a task added "now", floored to a round_minutes boundary.

    14:23:41 with a 10-minute boundary starts at 14:20:00.
    """
    step = round_minutes or settings.QUICK_ADD_ROUND_MINUTES
    start = now.replace(minute=(now.minute // step) * step, second=0, microsecond=0)
    return start, start + timedelta(minutes=duration_minutes)


class CalendarView:
    """Day/week calendar state backed by a PersistencePort."""

    def __init__(
        self,
        backend: PersistencePort,
        tz: tzinfo | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.tz = tz or local_timezone()
        self._now = now or (lambda: datetime.now(self.tz))
        self.reference_date: date = today(self.tz)
        self.view_mode: ViewMode = "day"
        self.config: BusinessHoursConfig | None = None
        self.events: list[CalendarEvent] = []

    # -----------------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------------

    async def load(self) -> None:
        """Fetch business hours, then the events of the visible range."""
        self.config = await self.backend.get_calendar_settings()
        logger.info(
            "Calendar settings loaded: %d-minute slots", self.config.slot_duration_minutes,
        )
        await self.refresh_events()

    async def refresh_events(self) -> list[CalendarEvent]:
        """Re-read the visible range. On failure the previous events are kept."""
        start, end = self.view_range
        try:
            self.events = await self.backend.get_events(start, end)
        except Exception as exc:
            logger.error("Failed to fetch events %s..%s: %s", start, end, exc)
            raise
        logger.info("Fetched %d events for %s..%s", len(self.events), start, end)
        return self.events

    # -----------------------------------------------------------------------
    # Read model
    # -----------------------------------------------------------------------

    @property
    def view_range(self) -> tuple[datetime, datetime]:
        return compute_view_range(self.reference_date, self.view_mode, self.tz)

    @property
    def slots(self) -> list[TimeSlot]:
        return generate_slots(self.config, self.reference_date)

    def grid(self) -> CalendarGrid:
        return build_grid(
            self.config, self.events, self.reference_date, self.view_mode, self.tz,
        )

    # -----------------------------------------------------------------------
    # Navigation
    # -----------------------------------------------------------------------

    async def set_view(self, view_mode: ViewMode) -> None:
        if view_mode == self.view_mode:
            return
        self.view_mode = view_mode
        await self.refresh_events()

    async def navigate(self, direction: int) -> None:
        """Move to the previous (direction < 0) or next view."""
        self.reference_date = shift_reference_date(
            self.reference_date, self.view_mode, direction,
        )
        await self.refresh_events()

    async def go_to(self, reference: date | datetime) -> None:
        self.reference_date = normalize_date(reference, self.tz)
        await self.refresh_events()

    async def go_today(self) -> None:
        await self.go_to(today(self.tz))

    # -----------------------------------------------------------------------
    # Intents
    # -----------------------------------------------------------------------

    async def schedule_task_at_slot(self, task: Task, day: date, slot: TimeSlot) -> None:
        """Create a task-based event where the task was dropped."""
        start, end = slot_block(day, slot, task_duration_minutes(task), self.tz)
        await self._schedule(task, start, end)

    async def schedule_task_now(self, task: Task) -> None:
        """Create a task-based event starting now (floored to the boundary)."""
        start, end = quick_add_block(self._now(), task_duration_minutes(task))
        await self._schedule(task, start, end)

    async def _schedule(self, task: Task, start: datetime, end: datetime) -> None:
        try:
            await self.backend.create_event_from_task(task.id, start, end)
        except Exception as exc:
            logger.error("Failed to schedule task %d at %s: %s", task.id, start, exc)
            raise
        logger.info("Scheduled task %d ('%s') %s-%s", task.id, task.title, start, end)
        await self.refresh_events()

    async def delete_event(self, event_id: int) -> None:
        try:
            await self.backend.delete_event(event_id)
        except Exception as exc:
            logger.error("Failed to delete event %d: %s", event_id, exc)
            raise
        logger.info("Deleted event %d", event_id)
        await self.refresh_events()
