"""
Расписание услуг и проверка попадания во временное окно.

Расписание действует одинаково для каждого дня недели: поле day_of_week
хранится, но при проверках не используется.
"""

from datetime import date, datetime, time, timedelta
from typing import List

from pydantic import BaseModel, Field, model_validator

from ..shared_kernel import EntityId, generate_id

_SECONDS_PER_DAY = 24 * 60 * 60


class ServiceSchedule(BaseModel):
    """Ежедневное окно, в которое услугу можно забронировать."""

    id: EntityId = Field(default_factory=generate_id)
    day_of_week: int = Field(0, ge=0, le=6)
    start_time: time
    end_time: time
    is_available: bool = True

    @model_validator(mode="after")
    def check_window(self) -> "ServiceSchedule":
        if self.start_time >= self.end_time:
            raise ValueError("Время начала должно быть раньше времени окончания")
        return self


def _seconds(moment: time) -> int:
    return moment.hour * 3600 + moment.minute * 60 + moment.second


class ScheduleAvailability:
    """Ответы на вопрос, помещается ли интервал в окно расписания."""

    @staticmethod
    def is_within_window(
        schedule: ServiceSchedule, instant: datetime, duration_minutes: int
    ) -> bool:
        """Проверяет, что [instant, instant + duration) лежит внутри окна.

        Интервал, заканчивающийся ровно в end_time, допустим. Интервал,
        переходящий через полночь, всегда отклоняется.
        """
        if not schedule.is_available or duration_minutes <= 0:
            return False

        begin = _seconds(instant.time()) + instant.microsecond / 1_000_000
        end = begin + duration_minutes * 60
        if end > _SECONDS_PER_DAY:
            return False
        return _seconds(schedule.start_time) <= begin and end <= _seconds(
            schedule.end_time
        )

    @staticmethod
    def available_slots(
        schedule: ServiceSchedule, day: date, duration_minutes: int
    ) -> List[datetime]:
        """Начала последовательных слотов длительностью duration_minutes на дату."""
        if not schedule.is_available or duration_minutes <= 0:
            return []

        step = timedelta(minutes=duration_minutes)
        slot = datetime.combine(day, schedule.start_time)
        window_end = datetime.combine(day, schedule.end_time)
        slots: List[datetime] = []
        while slot + step <= window_end:
            slots.append(slot)
            slot += step
        return slots


is_within_window = ScheduleAvailability.is_within_window
available_slots = ScheduleAvailability.available_slots
