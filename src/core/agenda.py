"""
Taskflow — Plain-text agenda.

Formats the calendar grid, the board and the timer read models as text for
the console entry point.

No I/O: this module only transforms data.
"""

from __future__ import annotations

from datetime import tzinfo
from typing import TYPE_CHECKING

from src.core.board_mutation import ordered_columns
from src.core.slot_grid import local_timezone
from src.core.timer_session import TimerState, format_remaining

if TYPE_CHECKING:
    from src.core.event_placement import CalendarGrid
    from src.core.timer_session import TimerDisplay
    from src.data.models import Board


def format_grid(grid: CalendarGrid, tz: tzinfo | None = None) -> str:
    """One line per slot that has something to draw, per visible day.

    End times are shown in the same local zone as the slot labels.
    """
    if grid.slot_duration_minutes is None:
        return "Calendar settings not loaded."

    tz = tz or local_timezone()

    lines: list[str] = []
    for day_idx, day in enumerate(grid.days):
        lines.append(day.strftime("%a %Y-%m-%d"))
        drawn = 0
        for row in grid.rows:
            cell = row.cells[day_idx]
            for placement in cell.placements:
                ev = placement.event
                end = ev.end.astimezone(tz).strftime("%H:%M")
                marker = "*" if ev.is_task_based else "-"
                lines.append(
                    f"  {row.slot.label} {marker} {ev.title} (until {end}, "
                    f"{placement.span_slots} slot{'s' if placement.span_slots != 1 else ''})"
                )
                drawn += 1
        if not drawn:
            lines.append("  (free)")
    return "\n".join(lines)


def format_board(board: Board) -> str:
    lines = [board.name]
    for col in ordered_columns(board):
        lines.append(f"  [{col.title}] ({len(col.tasks)})")
        for task in col.tasks:
            check = "x" if task.is_completed else " "
            estimate = f" ~{task.estimated_time_minutes}m" if task.estimated_time_minutes else ""
            lines.append(f"    {task.order}. [{check}] {task.title}{estimate}")
    return "\n".join(lines)


def format_timer(display: TimerDisplay) -> str:
    if display.state is TimerState.IDLE:
        return f"Timer idle ({format_remaining(display.remaining_seconds)})"
    pct = round(display.progress_fraction * 100)
    return (
        f"Timer {display.state.value} for task {display.task_id}: "
        f"{format_remaining(display.remaining_seconds)} left ({pct}%)"
    )
