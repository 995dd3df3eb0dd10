"""Tests for src.data.models — BusinessHoursConfig validation and dataclasses."""

from datetime import time

import pytest
from pydantic import ValidationError

from src.data.models import BusinessHoursConfig, Task, TimeSlot


def _config(**overrides):
    values = {
        "weekday_start": "09:00",
        "weekday_end": "18:00",
        "weekend_start": "10:00",
        "weekend_end": "16:00",
        "slot_duration_minutes": 30,
    }
    values.update(overrides)
    return BusinessHoursConfig(**values)


class TestBusinessHoursConfig:
    def test_parses_hhmm_strings(self):
        cfg = _config()
        assert cfg.weekday_start == time(9, 0)
        assert cfg.weekend_end == time(16, 0)

    def test_accepts_backend_field_names(self):
        cfg = BusinessHoursConfig.model_validate({
            "id": 3,
            "weekday_start_time": "08:30",
            "weekday_end_time": "17:30",
            "weekend_start_time": "11:00",
            "weekend_end_time": "15:00",
            "time_slot_duration": 15,
        })
        assert cfg.weekday_start == time(8, 30)
        assert cfg.slot_duration_minutes == 15

    @pytest.mark.parametrize("minutes", [10, 15, 30, 60])
    def test_allowed_slot_durations(self, minutes):
        assert _config(slot_duration_minutes=minutes).slot_duration_minutes == minutes

    @pytest.mark.parametrize("minutes", [0, 5, 20, 45, 90])
    def test_rejects_other_slot_durations(self, minutes):
        with pytest.raises(ValidationError):
            _config(slot_duration_minutes=minutes)

    def test_rejects_weekday_start_after_end(self):
        with pytest.raises(ValidationError):
            _config(weekday_start="18:00", weekday_end="09:00")

    def test_rejects_empty_weekend_range(self):
        with pytest.raises(ValidationError):
            _config(weekend_start="10:00", weekend_end="10:00")

    def test_is_frozen(self):
        cfg = _config()
        with pytest.raises(ValidationError):
            cfg.slot_duration_minutes = 10


def test_time_slot_label():
    assert TimeSlot(time=time(9, 5), hour=9, minute=5).label == "09:05"


def test_task_defaults():
    task = Task(id=1, column_id=2, title="Read", order=1)
    assert task.is_completed is False
    assert task.estimated_time_minutes is None
    assert task.description == ""
