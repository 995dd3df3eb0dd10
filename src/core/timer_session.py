"""
Taskflow — Timer Session State Machine.

A countdown for one task with start / pause / resume / reset, reconciled
against server-tracked sessions.

The backend has no pause primitive, only start and stop. Pausing therefore
stops the server session and freezes the displayed remaining time; resuming
starts a brand-new session whose duration is that frozen remainder.

    IDLE ──start──▶ RUNNING ──remaining hits 0──▶ COMPLETED
                     │  ▲
                pause│  │resume (new session)
                     ▼  │
                    PAUSED
    RUNNING / PAUSED / COMPLETED ──reset──▶ IDLE

A session that is already active on the server when the engine loads is
adopted as RUNNING, whatever task the UI currently has selected.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable

from src.config import settings
from src.ports.persistence_port import PersistenceError

if TYPE_CHECKING:
    from src.data.models import Task, TimerSession
    from src.ports.persistence_port import PersistencePort

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class TimerError(Exception):
    """Raised when a timer transition is illegal or the backend call fails.

    The engine stays in the state it was in before the transition.
    """


@dataclass(frozen=True)
class TimerDisplay:
    """Read model for the timer widget."""

    state: TimerState
    remaining_seconds: int
    progress_fraction: float
    task_id: int | None


def duration_for_task(task: Task, default_minutes: int | None = None) -> int:
    """Target minutes for a task: its estimate, else the custom default."""
    return task.estimated_time_minutes or default_minutes or settings.DEFAULT_TIMER_MINUTES


def format_remaining(seconds: int) -> str:
    """Format seconds as MM:SS (minutes may exceed 59)."""
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


class TimerEngine:
    """Countdown state machine for the single timer of a UI instance.

    Args:
        backend: Persistence port used for start/stop/active-timer calls.
        on_complete: Called with the task id when the countdown reaches zero.
        on_stop: Called with the server-reported actual seconds whenever a
            session is stopped by pause or reset.
        now: Clock returning an aware datetime (injectable for tests).
        tick_interval: Seconds between ticks while RUNNING.
        default_minutes: Duration used when no task estimate is available.
    """

    def __init__(
        self,
        backend: PersistencePort,
        on_complete: Callable[[int | None], None] | None = None,
        on_stop: Callable[[int], None] | None = None,
        now: Callable[[], datetime] | None = None,
        tick_interval: float = 1.0,
        default_minutes: int | None = None,
    ) -> None:
        self.backend = backend
        self.on_complete = on_complete
        self.on_stop = on_stop
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.tick_interval = tick_interval

        self.state = TimerState.IDLE
        self.task_id: int | None = None
        self.session: TimerSession | None = None
        self.configured_minutes = default_minutes or settings.DEFAULT_TIMER_MINUTES
        self.total_seconds = self.configured_minutes * 60
        self.remaining_seconds = self.total_seconds
        self._ticker: asyncio.Task | None = None

    # -----------------------------------------------------------------------
    # Read model
    # -----------------------------------------------------------------------

    def display(self) -> TimerDisplay:
        if self.state is TimerState.IDLE or self.total_seconds <= 0:
            progress = 0.0
        else:
            progress = 1 - self.remaining_seconds / self.total_seconds
            progress = min(1.0, max(0.0, progress))
        return TimerDisplay(
            state=self.state,
            remaining_seconds=self.remaining_seconds,
            progress_fraction=progress,
            task_id=self.task_id,
        )

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------

    def select_task(self, task: Task) -> None:
        """Point an idle timer at a task and show its target duration."""
        if self.state is not TimerState.IDLE:
            return
        self.task_id = task.id
        self.configured_minutes = duration_for_task(task, self.configured_minutes)
        self.total_seconds = self.configured_minutes * 60
        self.remaining_seconds = self.total_seconds

    async def load_active(self) -> bool:
        """Adopt the server's active session, if any. Returns True if adopted."""
        try:
            session = await self.backend.get_active_timer()
        except PersistenceError as exc:
            logger.error("Failed to fetch active timer: %s", exc)
            raise TimerError(f"Failed to fetch active timer: {exc}") from exc

        if session is None:
            return False

        self._cancel_ticker()
        elapsed = math.floor((self._now() - session.start_time).total_seconds())
        self.session = session
        self.task_id = session.task_id
        self.total_seconds = session.duration_seconds
        self.remaining_seconds = max(0, session.duration_seconds - elapsed)
        self.state = TimerState.RUNNING
        self._start_ticker()
        logger.info(
            "Adopted active session %s for task %d (%ds left)",
            session.id, session.task_id, self.remaining_seconds,
        )
        return True

    async def start(self, task_id: int, duration_minutes: int) -> None:
        """Ask the backend for a new session; RUNNING once it is confirmed."""
        if self.state is not TimerState.IDLE:
            raise TimerError(f"Cannot start while {self.state.value}")
        if duration_minutes <= 0:
            raise TimerError(f"Duration must be positive, got {duration_minutes}")

        duration_seconds = duration_minutes * 60
        session = await self._start_session(task_id, duration_seconds)

        self.session = session
        self.task_id = task_id
        self.configured_minutes = duration_minutes
        self.total_seconds = duration_seconds
        self.remaining_seconds = duration_seconds
        self.state = TimerState.RUNNING
        self._start_ticker()
        logger.info("Timer started for task %d (%d min)", task_id, duration_minutes)

    async def start_task(self, task: Task) -> None:
        await self.start(task.id, duration_for_task(task, self.configured_minutes))

    async def pause(self) -> None:
        """Stop the server session and freeze the remaining time."""
        if self.state is not TimerState.RUNNING:
            raise TimerError(f"Cannot pause while {self.state.value}")

        self._cancel_ticker()
        try:
            actual = await self._stop_session()
        except TimerError:
            self._start_ticker()
            raise

        self.session = None
        self.state = TimerState.PAUSED
        logger.info("Timer paused for task %s (%ds left)", self.task_id, self.remaining_seconds)
        self._notify_stop(actual)

    async def resume(self) -> None:
        """Start a new session for the frozen remaining time."""
        if self.state is not TimerState.PAUSED:
            raise TimerError(f"Cannot resume while {self.state.value}")

        session = await self._start_session(self.task_id, self.remaining_seconds)

        self.session = session
        self.state = TimerState.RUNNING
        self._start_ticker()
        logger.info(
            "Timer resumed for task %s with new session %s (%ds)",
            self.task_id, session.id, self.remaining_seconds,
        )

    async def reset(self) -> None:
        """Return to IDLE with the configured duration restored."""
        if self.state is TimerState.RUNNING:
            self._cancel_ticker()
            try:
                actual = await self._stop_session()
            except TimerError:
                self._start_ticker()
                raise
            self._notify_stop(actual)
        elif self.state is TimerState.COMPLETED and self.session is not None:
            # The countdown ended locally; the server session may still be open.
            try:
                actual = await self._stop_session()
            except TimerError as exc:
                logger.warning("Completed session could not be stopped: %s", exc)
            else:
                self._notify_stop(actual)

        self.session = None
        self.state = TimerState.IDLE
        self.total_seconds = self.configured_minutes * 60
        self.remaining_seconds = self.total_seconds
        logger.info("Timer reset (%d min)", self.configured_minutes)

    def tick(self) -> None:
        """Advance one second. Ignored unless RUNNING."""
        if self.state is not TimerState.RUNNING:
            return
        if self.remaining_seconds > 0:
            self.remaining_seconds -= 1
        if self.remaining_seconds <= 0:
            self._complete()

    async def close(self) -> None:
        """Tear down: no tick may fire after this returns."""
        ticker = self._ticker
        self._ticker = None
        if ticker is None:
            return
        ticker.cancel()
        try:
            await ticker
        except asyncio.CancelledError:
            pass

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _complete(self) -> None:
        self.remaining_seconds = 0
        self.state = TimerState.COMPLETED
        self._cancel_ticker()
        logger.info("Timer completed for task %s", self.task_id)
        if self.on_complete is not None:
            self.on_complete(self.task_id)

    async def _start_session(self, task_id: int | None, duration_seconds: int) -> TimerSession:
        if task_id is None:
            raise TimerError("No task selected")
        try:
            return await self.backend.start_timer(task_id, duration_seconds)
        except PersistenceError as exc:
            logger.error("Failed to start timer for task %d: %s", task_id, exc)
            raise TimerError(f"Failed to start timer: {exc}") from exc

    async def _stop_session(self) -> int:
        if self.session is None or self.session.id is None:
            raise TimerError("No server session to stop")
        try:
            stopped = await self.backend.stop_timer(self.session.id)
        except PersistenceError as exc:
            logger.error("Failed to stop timer session %d: %s", self.session.id, exc)
            raise TimerError(f"Failed to stop timer: {exc}") from exc
        return stopped.duration_seconds

    def _notify_stop(self, actual_seconds: int) -> None:
        logger.info("Session stopped after %ds", actual_seconds)
        if self.on_stop is not None:
            self.on_stop(actual_seconds)

    def _start_ticker(self) -> None:
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.create_task(self._run_ticker())

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _run_ticker(self) -> None:
        while self.state is TimerState.RUNNING:
            await asyncio.sleep(self.tick_interval)
            try:
                self.tick()
            except Exception as exc:
                # Nobody awaits this task, so a failing on_complete is only logged
                logger.error("Timer tick failed for task %s: %s", self.task_id, exc, exc_info=True)
