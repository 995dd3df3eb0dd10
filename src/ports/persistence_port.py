"""Persistence port — abstract interface for the kanban/calendar/timer backend.

Core modules depend on this protocol, never on a specific transport. The
backend owns durable storage, authentication and the single-active-timer
guarantee; the core only issues intents and reads back authoritative state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from src.data.models import Board, BusinessHoursConfig, CalendarEvent, Task, TimerSession


class PersistenceError(Exception):
    """Raised when a backend operation fails (network or server error)."""


class NotFoundError(PersistenceError):
    """Raised when the backend reports the requested record does not exist."""


class PersistencePort(Protocol):
    """Abstract backend interface used by core modules."""

    # Calendar
    async def get_calendar_settings(self) -> BusinessHoursConfig: ...

    async def get_events(
        self, range_start: datetime, range_end: datetime
    ) -> list[CalendarEvent]: ...

    async def create_event_from_task(
        self, task_id: int, start: datetime, end: datetime
    ) -> None: ...

    async def delete_event(self, event_id: int) -> None: ...

    # Timer
    async def get_active_timer(self) -> TimerSession | None: ...

    async def start_timer(self, task_id: int, duration_seconds: int) -> TimerSession: ...

    async def stop_timer(self, session_id: int) -> TimerSession: ...

    # Board
    async def get_board_with_columns(self, board_id: int) -> Board: ...

    async def get_task(self, task_id: int) -> Task: ...

    async def update_task(self, task_id: int, fields: dict[str, Any]) -> Task: ...

    async def move_task(self, task_id: int, new_column_id: int, new_order: int) -> None: ...

    async def create_task(
        self, column_id: int, title: str, order: int, **fields: Any
    ) -> Task: ...

    async def delete_task(self, task_id: int) -> None: ...
