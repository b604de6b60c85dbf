"""
Доменная модель контекста проживания.

Содержит приют, бронирование места на ночлег, его машину состояний
и доменный сервис, связывающий бронирования с журналом вместимости.
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, PrivateAttr

from ..shared_kernel import (
    CapacityExceeded,
    DomainEvent,
    EntityId,
    Gender,
    IllegalDelete,
    InvalidTransition,
    ReservationType,
    User,
    generate_id,
    now,
    validate_sizing,
)
from ..shared_kernel import interfaces as shared_ports
from ..shared_kernel.infrastructure import KeyedLocks, get_logger
from .capacity import CapacityLedger, CommitmentHandle
from .interfaces import ILodgingReservationRepository


class LodgingStatus(str, Enum):
    """Статусы бронирования проживания."""

    PENDING = "pending"  # Ожидает подтверждения
    CONFIRMED = "confirmed"  # Подтверждено персоналом
    CHECKED_IN = "checked_in"  # Гость заселен
    CHECKED_OUT = "checked_out"  # Гость выселился
    CANCELLED = "cancelled"  # Отменено
    REJECTED = "rejected"  # Отклонено персоналом


# Каждому статусу соответствует строка таблицы, у конечных статусов она пуста
LODGING_TRANSITIONS: Dict[LodgingStatus, FrozenSet[LodgingStatus]] = {
    LodgingStatus.PENDING: frozenset(
        {LodgingStatus.CONFIRMED, LodgingStatus.CANCELLED, LodgingStatus.REJECTED}
    ),
    LodgingStatus.CONFIRMED: frozenset(
        {LodgingStatus.CHECKED_IN, LodgingStatus.CANCELLED}
    ),
    LodgingStatus.CHECKED_IN: frozenset({LodgingStatus.CHECKED_OUT}),
    LodgingStatus.CHECKED_OUT: frozenset(),
    LodgingStatus.CANCELLED: frozenset(),
    LodgingStatus.REJECTED: frozenset(),
}

TERMINAL_LODGING_STATUSES = frozenset(
    status for status, targets in LODGING_TRANSITIONS.items() if not targets
)

# Переходы, при которых места возвращаются в журнал вместимости
RELEASING_LODGING_STATUSES = frozenset(
    {LodgingStatus.CANCELLED, LodgingStatus.REJECTED}
)


class Hostel(BaseModel):
    """Приют с раздельной вместимостью для мужчин и женщин."""

    id: EntityId = Field(default_factory=generate_id)
    name: str
    men_capacity: int = Field(..., ge=0)
    women_capacity: int = Field(..., ge=0)
    is_active: bool = True

    @property
    def total_capacity(self) -> int:
        return self.men_capacity + self.women_capacity

    def capacity_for(self, gender: Gender) -> int:
        return self.men_capacity if gender == Gender.MALE else self.women_capacity


class LodgingReservationCreated(DomainEvent):
    """Событие создания бронирования проживания."""

    reservation_id: EntityId
    hostel_id: EntityId
    arrival_date: date
    men_quantity: int
    women_quantity: int


class LodgingReservationStatusChanged(DomainEvent):
    """Событие смены статуса бронирования проживания."""

    reservation_id: EntityId
    previous_status: LodgingStatus
    new_status: LodgingStatus


class LodgingReservation(BaseModel):
    """Бронирование мест в приюте на дату заезда."""

    id: EntityId = Field(default_factory=generate_id)
    hostel_id: EntityId
    user_id: EntityId
    type: ReservationType
    men_quantity: int = Field(..., ge=0)
    women_quantity: int = Field(..., ge=0)
    arrival_date: date
    status: LodgingStatus = LodgingStatus.PENDING
    commitment_id: Optional[EntityId] = None
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
    def total_quantity(self) -> int:
        return self.men_quantity + self.women_quantity

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_LODGING_STATUSES

    def allowed_transitions(self) -> FrozenSet[LodgingStatus]:
        return LODGING_TRANSITIONS[self.status]

    def check_transition(self, target: LodgingStatus) -> LodgingStatus:
        """Проверяет переход по таблице, не меняя состояние."""
        try:
            target = LodgingStatus(target)
        except ValueError:
            raise InvalidTransition(
                f"Неизвестный статус бронирования: {target}",
                field="status",
                value=str(target),
            ) from None

        if target not in LODGING_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Невозможно перевести бронирование из статуса "
                f"{self.status.value} в {target.value}",
                field="status",
                value=target.value,
            )
        return target

    def transition_to(self, target: LodgingStatus) -> LodgingStatus:
        """Переводит бронирование в новый статус и возвращает предыдущий."""
        target = self.check_transition(target)

        previous = self.status
        self.status = target
        self.updated_at = now()
        self._domain_events.append(
            LodgingReservationStatusChanged(
                reservation_id=self.id, previous_status=previous, new_status=target
            )
        )
        return previous

    @classmethod
    def create(
        cls,
        hostel: Hostel,
        user: User,
        type: ReservationType,
        men_quantity: int,
        women_quantity: int,
        arrival_date: date,
        commitment: CommitmentHandle,
    ) -> "LodgingReservation":
        """Создает бронирование, уже обеспеченное местами в журнале."""
        reservation = cls(
            hostel_id=hostel.id,
            user_id=user.id,
            type=type,
            men_quantity=men_quantity,
            women_quantity=women_quantity,
            arrival_date=arrival_date,
            commitment_id=commitment.id,
        )
        reservation._domain_events.append(
            LodgingReservationCreated(
                reservation_id=reservation.id,
                hostel_id=hostel.id,
                arrival_date=arrival_date,
                men_quantity=men_quantity,
                women_quantity=women_quantity,
            )
        )
        return reservation


class LodgingReservationMachine:
    """Доменный сервис жизненного цикла бронирования проживания.

    Единственное место, где бронирования проживания создаются, меняют
    статус и удаляются. Все изменения мест проходят через журнал
    вместимости.
    """

    def __init__(
        self,
        ledger: CapacityLedger,
        reservations: ILodgingReservationRepository,
        release_on_checkout: bool = False,
        lock_timeout_seconds: float = 0.5,
        logger: Optional[shared_ports.ILogger] = None,
    ):
        self._ledger = ledger
        self._reservations = reservations
        self._release_on_checkout = release_on_checkout
        self._locks = KeyedLocks(lock_timeout_seconds)
        self._logger = logger or get_logger(__name__)

    def create(
        self,
        hostel: Hostel,
        user: User,
        type: ReservationType,
        men_quantity: int,
        women_quantity: int,
        arrival_date: date,
    ) -> LodgingReservation:
        """Создает бронирование в статусе pending.

        Сначала проверяется состав, затем места занимаются в журнале. Если
        сохранить бронирование не удалось, места возвращаются. Занятие мест
        и сохранение брони идут под блокировкой приюта и не пересекаются
        с его удалением.
        """
        validate_sizing(type, men_quantity, women_quantity, user.gender)
        if not hostel.is_active:
            raise CapacityExceeded(
                f"Приют {hostel.name} не принимает бронирования",
                field="hostel_id",
                value=str(hostel.id),
            )

        with self._ledger.hold_hostel(hostel.id):
            commitment = self._ledger.try_reserve(
                hostel.id, arrival_date, men_quantity, women_quantity
            )
            try:
                reservation = LodgingReservation.create(
                    hostel=hostel,
                    user=user,
                    type=type,
                    men_quantity=men_quantity,
                    women_quantity=women_quantity,
                    arrival_date=arrival_date,
                    commitment=commitment,
                )
                self._reservations.add(reservation)
            except Exception:
                self._ledger.release(commitment)
                raise

        self._logger.info(
            "Lodging reservation created",
            reservation_id=str(reservation.id),
            hostel_id=str(hostel.id),
            arrival_date=arrival_date.isoformat(),
            men=men_quantity,
            women=women_quantity,
        )
        return reservation

    def transition(
        self, reservation: LodgingReservation, target: LodgingStatus
    ) -> LodgingReservation:
        """Меняет статус по таблице переходов и при необходимости освобождает места."""
        with self._locks.hold(reservation.id):
            target = reservation.check_transition(target)

            # Места освобождаются до смены статуса: если журнал занят,
            # бронирование остается в прежнем состоянии
            if target in RELEASING_LODGING_STATUSES or (
                target == LodgingStatus.CHECKED_OUT and self._release_on_checkout
            ):
                self._release(reservation)

            previous = reservation.transition_to(target)
            self._reservations.update(reservation)

        self._logger.info(
            "Lodging reservation status changed",
            reservation_id=str(reservation.id),
            previous_status=previous.value,
            new_status=reservation.status.value,
        )
        return reservation

    def delete(self, reservation: LodgingReservation) -> None:
        """Удаляет бронирование, находящееся в конечном статусе."""
        with self._locks.hold(reservation.id):
            if not reservation.is_terminal:
                raise IllegalDelete(
                    f"Нельзя удалить активное бронирование в статусе "
                    f"{reservation.status.value}, сначала отмените его",
                    field="status",
                    value=reservation.status.value,
                )
            self._reservations.delete(reservation.id)

        self._logger.info(
            "Lodging reservation deleted", reservation_id=str(reservation.id)
        )

    def _release(self, reservation: LodgingReservation) -> None:
        if reservation.commitment_id is None:
            return
        commitment = self._ledger.get_commitment(reservation.commitment_id)
        if commitment is not None and self._ledger.release(commitment):
            self._logger.info(
                "Lodging capacity released",
                reservation_id=str(reservation.id),
                commitment_id=str(commitment.id),
            )
