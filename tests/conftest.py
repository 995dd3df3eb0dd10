"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a sample board and a fake backend.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("API_TOKEN", "fake-token-for-tests")
os.environ.setdefault("API_BASE_URL", "http://backend.test")
os.environ["TIMEZONE"] = "UTC"

from datetime import time
from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def business_hours():
    """Weekdays 09:00-18:00, weekends 10:00-16:00, 10-minute slots."""
    from src.data.models import BusinessHoursConfig
    return BusinessHoursConfig(
        weekday_start=time(9, 0),
        weekday_end=time(18, 0),
        weekend_start=time(10, 0),
        weekend_end=time(16, 0),
        slot_duration_minutes=10,
    )


def make_board():
    """To Do [1, 2, 3] / In Progress [4] / Done [5]."""
    from src.data.models import Board, Column, Task
    return Board(
        id=1,
        name="Personal",
        columns=[
            Column(id=10, board_id=1, title="To Do", order=1, tasks=[
                Task(id=1, column_id=10, title="Write report", order=1, estimated_time_minutes=50),
                Task(id=2, column_id=10, title="Review PR", order=2),
                Task(id=3, column_id=10, title="Plan sprint", order=3, estimated_time_minutes=25),
            ]),
            Column(id=20, board_id=1, title="In Progress", order=2, tasks=[
                Task(id=4, column_id=20, title="Fix login bug", order=1),
            ]),
            Column(id=30, board_id=1, title="Done", order=3, tasks=[
                Task(id=5, column_id=30, title="Set up CI", order=1, is_completed=True),
            ]),
        ],
    )


@pytest.fixture
def sample_board():
    return make_board()


@pytest.fixture
def backend(business_hours):
    """A PersistencePort double with every call succeeding."""
    be = MagicMock()
    be.get_calendar_settings = AsyncMock(return_value=business_hours)
    be.get_events = AsyncMock(return_value=[])
    be.create_event_from_task = AsyncMock(return_value=None)
    be.delete_event = AsyncMock(return_value=None)
    be.get_active_timer = AsyncMock(return_value=None)
    be.start_timer = AsyncMock()
    be.stop_timer = AsyncMock()
    be.get_board_with_columns = AsyncMock(side_effect=lambda board_id: make_board())
    be.get_task = AsyncMock()
    be.update_task = AsyncMock()
    be.move_task = AsyncMock(return_value=None)
    be.create_task = AsyncMock()
    be.delete_task = AsyncMock(return_value=None)
    return be
