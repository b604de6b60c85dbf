"""
Доменная модель контекста услуг.

Содержит услугу, ее привязку к приюту, бронирование услуги,
его машину состояний и доменный сервис жизненного цикла.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, PrivateAttr

from ..shared_kernel import (
    DomainEvent,
    EntityId,
    IllegalDelete,
    InvalidPartySize,
    InvalidSchedule,
    InvalidTransition,
    ReservationType,
    User,
    as_utc,
    generate_id,
    now,
    validate_sizing,
)
from ..shared_kernel import interfaces as shared_ports
from ..shared_kernel.infrastructure import KeyedLocks, get_logger
from .interfaces import IServiceReservationRepository
from .scheduling import ScheduleAvailability, ServiceSchedule


class ServiceStatus(str, Enum):
    """Статусы бронирования услуги."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


SERVICE_TRANSITIONS: Dict[ServiceStatus, FrozenSet[ServiceStatus]] = {
    ServiceStatus.PENDING: frozenset(
        {ServiceStatus.CONFIRMED, ServiceStatus.CANCELLED, ServiceStatus.REJECTED}
    ),
    ServiceStatus.CONFIRMED: frozenset(
        {ServiceStatus.IN_PROGRESS, ServiceStatus.CANCELLED}
    ),
    ServiceStatus.IN_PROGRESS: frozenset(
        {ServiceStatus.COMPLETED, ServiceStatus.CANCELLED}
    ),
    ServiceStatus.COMPLETED: frozenset(),
    ServiceStatus.CANCELLED: frozenset(),
    ServiceStatus.REJECTED: frozenset(),
}

TERMINAL_SERVICE_STATUSES = frozenset(
    status for status, targets in SERVICE_TRANSITIONS.items() if not targets
)

# Только эти статусы могут считаться просроченными
EXPIRABLE_SERVICE_STATUSES = frozenset(
    {ServiceStatus.PENDING, ServiceStatus.CONFIRMED}
)


class Service(BaseModel):
    """Услуга, которую приют предоставляет по расписанию (например, душ)."""

    id: EntityId = Field(default_factory=generate_id)
    name: str
    description: str = ""
    price: float = Field(0, ge=0)
    max_time_minutes: int = Field(..., gt=0)
    needs_approval: bool = False
    reservation_type: ReservationType = ReservationType.INDIVIDUAL
    is_active: bool = True


class HostelService(BaseModel):
    """Привязка услуги к приюту через расписание."""

    id: EntityId = Field(default_factory=generate_id)
    hostel_id: EntityId
    service_id: EntityId
    schedule_id: EntityId
    is_active: bool = True


class ServiceReservationCreated(DomainEvent):
    """Событие создания бронирования услуги."""

    reservation_id: EntityId
    hostel_service_id: EntityId
    datetime_reserved: datetime
    duration_minutes: int


class ServiceReservationStatusChanged(DomainEvent):
    """Событие смены статуса бронирования услуги."""

    reservation_id: EntityId
    previous_status: ServiceStatus
    new_status: ServiceStatus


class ServiceReservation(BaseModel):
    """Бронирование услуги на конкретное время."""

    id: EntityId = Field(default_factory=generate_id)
    user_id: EntityId
    hostel_service_id: EntityId
    type: ReservationType
    men_quantity: int = Field(..., ge=0)
    women_quantity: int = Field(..., ge=0)
    datetime_reserved: datetime
    duration_minutes: int = Field(..., gt=0)
    status: ServiceStatus = ServiceStatus.PENDING
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)
    _domain_events: List[DomainEvent] = PrivateAttr(default_factory=list)

    @property
    def domain_events(self) -> List[DomainEvent]:
        """Возвращает список доменных событий."""
        return self._domain_events

    def pull_domain_events(self) -> List[DomainEvent]:
        """Возвращает накопленные события и очищает список."""
        events = list(self._domain_events)
        self._domain_events.clear()
        return events

    @property
    def ends_at(self) -> datetime:
        return self.datetime_reserved + timedelta(minutes=self.duration_minutes)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SERVICE_STATUSES

    def is_expired(self, as_of: datetime) -> bool:
        """Интервал уже закончился, а бронирование все еще не начато.

        Время без часового пояса считается заданным в UTC.
        """
        return self.status in EXPIRABLE_SERVICE_STATUSES and as_utc(
            self.ends_at
        ) <= as_utc(as_of)

    def allowed_transitions(self) -> FrozenSet[ServiceStatus]:
        return SERVICE_TRANSITIONS[self.status]

    def check_transition(self, target: ServiceStatus) -> ServiceStatus:
        """Проверяет переход по таблице, не меняя состояние."""
        try:
            target = ServiceStatus(target)
        except ValueError:
            raise InvalidTransition(
                f"Неизвестный статус бронирования услуги: {target}",
                field="status",
                value=str(target),
            ) from None

        if target not in SERVICE_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Невозможно перевести бронирование услуги из статуса "
                f"{self.status.value} в {target.value}",
                field="status",
                value=target.value,
            )
        return target

    def transition_to(self, target: ServiceStatus) -> ServiceStatus:
        """Переводит бронирование в новый статус и возвращает предыдущий."""
        target = self.check_transition(target)

        previous = self.status
        self.status = target
        self.updated_at = now()
        self._domain_events.append(
            ServiceReservationStatusChanged(
                reservation_id=self.id, previous_status=previous, new_status=target
            )
        )
        return previous


class ServiceReservationMachine:
    """Доменный сервис жизненного цикла бронирования услуги."""

    def __init__(
        self,
        reservations: IServiceReservationRepository,
        availability: Optional[ScheduleAvailability] = None,
        lock_timeout_seconds: float = 0.5,
        logger: Optional[shared_ports.ILogger] = None,
    ):
        self._reservations = reservations
        self._availability = availability or ScheduleAvailability()
        self._locks = KeyedLocks(lock_timeout_seconds)
        self._logger = logger or get_logger(__name__)

    def create(
        self,
        user: User,
        hostel_service: HostelService,
        service: Service,
        schedule: ServiceSchedule,
        type: ReservationType,
        men_quantity: int,
        women_quantity: int,
        datetime_reserved: datetime,
        duration_minutes: Optional[int] = None,
    ) -> ServiceReservation:
        """Создает бронирование услуги в статусе pending.

        Порядок проверок: состав, тип бронирования услуги, активность
        привязки и услуги, затем окно расписания. При любой ошибке
        ничего не сохраняется.
        """
        validate_sizing(type, men_quantity, women_quantity, user.gender)

        if ReservationType(type) != service.reservation_type:
            raise InvalidPartySize(
                "reservation_type",
                f"Услуга «{service.name}» допускает только бронирование типа "
                f"{service.reservation_type.value}",
                field="type",
                value=ReservationType(type).value,
            )

        if not hostel_service.is_active:
            raise InvalidSchedule(
                "Услуга отключена в этом приюте",
                field="hostel_service_id",
                value=str(hostel_service.id),
            )
        if not service.is_active:
            raise InvalidSchedule(
                f"Услуга «{service.name}» неактивна",
                field="service_id",
                value=str(service.id),
            )
        if not schedule.is_available:
            raise InvalidSchedule(
                "Расписание услуги недоступно",
                field="schedule_id",
                value=str(schedule.id),
            )

        duration = service.max_time_minutes if duration_minutes is None else duration_minutes
        if duration <= 0 or duration > service.max_time_minutes:
            raise InvalidSchedule(
                f"Длительность должна быть от 1 до {service.max_time_minutes} минут",
                field="duration_minutes",
                value=duration,
            )

        if not self._availability.is_within_window(schedule, datetime_reserved, duration):
            raise InvalidSchedule(
                f"Интервал {datetime_reserved.strftime('%H:%M')} + {duration} мин "
                f"выходит за окно расписания "
                f"{schedule.start_time.strftime('%H:%M')}-"
                f"{schedule.end_time.strftime('%H:%M')}",
                field="datetime_reserved",
                value=datetime_reserved.isoformat(),
            )

        reservation = ServiceReservation(
            user_id=user.id,
            hostel_service_id=hostel_service.id,
            type=type,
            men_quantity=men_quantity,
            women_quantity=women_quantity,
            datetime_reserved=datetime_reserved,
            duration_minutes=duration,
        )
        reservation.domain_events.append(
            ServiceReservationCreated(
                reservation_id=reservation.id,
                hostel_service_id=hostel_service.id,
                datetime_reserved=datetime_reserved,
                duration_minutes=duration,
            )
        )
        self._reservations.add(reservation)

        self._logger.info(
            "Service reservation created",
            reservation_id=str(reservation.id),
            hostel_service_id=str(hostel_service.id),
            datetime_reserved=datetime_reserved.isoformat(),
            duration_minutes=duration,
        )
        return reservation

    def transition(
        self, reservation: ServiceReservation, target: ServiceStatus
    ) -> ServiceReservation:
        """Меняет статус бронирования услуги по таблице переходов."""
        with self._locks.hold(reservation.id):
            previous = reservation.transition_to(target)
            self._reservations.update(reservation)

        self._logger.info(
            "Service reservation status changed",
            reservation_id=str(reservation.id),
            previous_status=previous.value,
            new_status=reservation.status.value,
        )
        return reservation

    def delete(self, reservation: ServiceReservation) -> None:
        """Удаляет бронирование услуги, находящееся в конечном статусе."""
        with self._locks.hold(reservation.id):
            if not reservation.is_terminal:
                raise IllegalDelete(
                    f"Нельзя удалить активное бронирование услуги в статусе "
                    f"{reservation.status.value}, сначала отмените его",
                    field="status",
                    value=reservation.status.value,
                )
            self._reservations.delete(reservation.id)

        self._logger.info(
            "Service reservation deleted", reservation_id=str(reservation.id)
        )
