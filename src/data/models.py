"""
Taskflow — Data Models.

The board tree (Board → Column → Task), calendar events, timer sessions and
the business-hours configuration that drives the calendar grid. The REST
backend owns durable storage; these are the in-memory shapes the engines
work on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ALLOWED_SLOT_MINUTES = (10, 15, 30, 60)


class BusinessHoursConfig(BaseModel):
    """Weekday/weekend visible hours and the slot size of the calendar grid.

    Accepts the backend's field names as well:
    {
        "weekday_start_time": "09:00",
        "weekday_end_time": "18:00",
        "weekend_start_time": "10:00",
        "weekend_end_time": "16:00",
        "time_slot_duration": 10
    }
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    weekday_start: time = Field(alias="weekday_start_time")
    weekday_end: time = Field(alias="weekday_end_time")
    weekend_start: time = Field(alias="weekend_start_time")
    weekend_end: time = Field(alias="weekend_end_time")
    slot_duration_minutes: int = Field(alias="time_slot_duration")

    @field_validator("slot_duration_minutes")
    @classmethod
    def check_slot_duration(cls, v: int) -> int:
        if v not in ALLOWED_SLOT_MINUTES:
            raise ValueError(f"slot duration must be one of {ALLOWED_SLOT_MINUTES}, got {v}")
        return v

    @model_validator(mode="after")
    def check_ranges(self) -> BusinessHoursConfig:
        if self.weekday_start >= self.weekday_end:
            raise ValueError("weekday start must be before weekday end")
        if self.weekend_start >= self.weekend_end:
            raise ValueError("weekend start must be before weekend end")
        return self


@dataclass(frozen=True)
class TimeSlot:
    """One row of the calendar grid, e.g. 09:30."""

    time: time
    hour: int
    minute: int

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass
class Task:
    """A kanban card. `order` is 1-based and dense within its column."""

    id: int
    column_id: int
    title: str
    order: int
    description: str = ""
    estimated_time_minutes: int | None = None
    actual_time_minutes: int | None = None
    is_completed: bool = False
    due_date: str | None = None


@dataclass
class Column:
    """A kanban column. The one titled "Done" receives completed tasks."""

    id: int
    board_id: int
    title: str
    order: int
    tasks: list[Task] = field(default_factory=list)


@dataclass
class Board:
    """A board with its columns and their tasks."""

    id: int
    name: str
    columns: list[Column] = field(default_factory=list)


@dataclass
class CalendarEvent:
    """A time-ranged calendar entry; ids always come from the backend.

    Task-based events are created by scheduling a kanban task and carry
    its `task_id` (and usually a snapshot of the task).
    """

    id: int
    title: str
    start: datetime          # timezone-aware
    end: datetime            # timezone-aware, start < end
    task_id: int | None = None
    is_task_based: bool = False
    color: str = "#3B82F6"
    linked_task: Task | None = None


@dataclass
class TimerSession:
    """A server-tracked countdown run.

    While active, `duration_seconds` is the target length. Once stopped, the
    backend rewrites it to the actual elapsed seconds.
    """

    task_id: int
    start_time: datetime     # timezone-aware
    duration_seconds: int
    is_active: bool = True
    id: int | None = None
    end_time: datetime | None = None
    task_title: str | None = None
