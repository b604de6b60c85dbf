"""
Тесты окна расписания услуг.
"""

from datetime import date, datetime, time

import pytest
from pydantic import ValidationError

from shelter_network.services.scheduling import (
    ScheduleAvailability,
    ServiceSchedule,
    available_slots,
    is_within_window,
)

DAY = date(2026, 11, 2)


def at(hour, minute=0, day=DAY):
    return datetime.combine(day, time(hour, minute))


@pytest.fixture
def working_hours():
    return ServiceSchedule(start_time=time(8, 0), end_time=time(17, 0))


class TestIsWithinWindow:
    def test_interval_ending_at_close_is_accepted(self, working_hours):
        assert is_within_window(working_hours, at(16, 0), 60)

    def test_interval_past_close_is_rejected(self, working_hours):
        assert not is_within_window(working_hours, at(16, 30), 60)

    def test_start_at_open_is_accepted(self, working_hours):
        assert is_within_window(working_hours, at(8, 0), 60)

    def test_start_before_open_is_rejected(self, working_hours):
        assert not is_within_window(working_hours, at(7, 59), 30)

    def test_unavailable_schedule(self):
        schedule = ServiceSchedule(
            start_time=time(8, 0), end_time=time(17, 0), is_available=False
        )
        assert not ScheduleAvailability.is_within_window(schedule, at(10, 0), 30)

    @pytest.mark.parametrize("duration", [0, -15])
    def test_duration_must_be_positive(self, working_hours, duration):
        assert not is_within_window(working_hours, at(10, 0), duration)

    def test_midnight_is_never_wrapped(self):
        late = ServiceSchedule(start_time=time(22, 0), end_time=time(23, 59))
        assert not is_within_window(late, at(23, 30), 60)

    def test_day_of_week_is_not_consulted(self):
        sunday_only = ServiceSchedule(
            day_of_week=6, start_time=time(8, 0), end_time=time(17, 0)
        )
        assert is_within_window(sunday_only, at(9, 0), 60)

    def test_seconds_are_taken_into_account(self, working_hours):
        instant = datetime(2026, 11, 2, 16, 0, 1)
        assert not is_within_window(working_hours, instant, 60)


class TestServiceSchedule:
    def test_start_must_precede_end(self):
        with pytest.raises(ValidationError):
            ServiceSchedule(start_time=time(17, 0), end_time=time(8, 0))

    def test_empty_window_is_invalid(self):
        with pytest.raises(ValidationError):
            ServiceSchedule(start_time=time(9, 0), end_time=time(9, 0))

    def test_day_of_week_range(self):
        with pytest.raises(ValidationError):
            ServiceSchedule(day_of_week=7, start_time=time(8, 0), end_time=time(9, 0))


class TestAvailableSlots:
    def test_hourly_slots(self, working_hours):
        slots = available_slots(working_hours, DAY, 60)

        assert len(slots) == 9
        assert slots[0] == at(8, 0)
        assert slots[-1] == at(16, 0)
        assert all(is_within_window(working_hours, s, 60) for s in slots)

    def test_partial_slot_is_dropped(self):
        schedule = ServiceSchedule(start_time=time(8, 0), end_time=time(9, 30))
        assert available_slots(schedule, DAY, 60) == [at(8, 0)]

    def test_unavailable_schedule_has_no_slots(self):
        schedule = ServiceSchedule(
            start_time=time(8, 0), end_time=time(17, 0), is_available=False
        )
        assert available_slots(schedule, DAY, 30) == []
