"""
Прикладной слой контекста проживания.

Содержит сервисы приложения, которые координируют
взаимодействие между внешними интерфейсами и доменной моделью.
"""

from collections import Counter
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from ..shared_kernel import (
    EntityId,
    EntityNotFound,
    Gender,
    IllegalDelete,
    ReservationType,
    User,
)
from ..shared_kernel import interfaces as shared_ports
from ..shared_kernel.infrastructure import get_logger
from . import interfaces as ports
from .capacity import CapacityLedger
from .domain import (
    TERMINAL_LODGING_STATUSES,
    Hostel,
    LodgingReservation,
    LodgingReservationMachine,
    LodgingStatus,
)

# DTO (Data Transfer Objects) для входящих данных


class CreateLodgingReservationRequest(BaseModel):
    """Запрос на создание бронирования проживания."""

    hostel_id: EntityId
    user_id: EntityId
    type: ReservationType
    men_quantity: int
    women_quantity: int
    arrival_date: date


class ChangeLodgingStatusRequest(BaseModel):
    """Запрос на смену статуса бронирования проживания."""

    reservation_id: EntityId
    target_status: LodgingStatus


# DTO для исходящих данных


class LodgingReservationDTO(BaseModel):
    """DTO для представления бронирования проживания."""

    id: EntityId
    hostel_id: EntityId
    user_id: EntityId
    type: ReservationType
    men_quantity: int
    women_quantity: int
    arrival_date: date
    status: LodgingStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, reservation: LodgingReservation) -> "LodgingReservationDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=reservation.id,
            hostel_id=reservation.hostel_id,
            user_id=reservation.user_id,
            type=reservation.type,
            men_quantity=reservation.men_quantity,
            women_quantity=reservation.women_quantity,
            arrival_date=reservation.arrival_date,
            status=reservation.status,
            created_at=reservation.created_at,
            updated_at=reservation.updated_at,
        )


class CapacityDTO(BaseModel):
    """Свободные места приюта на дату."""

    hostel_id: EntityId
    date: date
    men_available: int
    women_available: int

    @property
    def total_available(self) -> int:
        return self.men_available + self.women_available


class HostelDTO(BaseModel):
    """DTO для представления приюта."""

    id: EntityId
    name: str
    men_capacity: int
    women_capacity: int
    total_capacity: int
    is_active: bool

    @classmethod
    def from_domain(cls, hostel: Hostel) -> "HostelDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=hostel.id,
            name=hostel.name,
            men_capacity=hostel.men_capacity,
            women_capacity=hostel.women_capacity,
            total_capacity=hostel.total_capacity,
            is_active=hostel.is_active,
        )


class HostelStatisticsDTO(BaseModel):
    """Загрузка приюта на дату."""

    hostel_id: EntityId
    date: date
    men_capacity: int
    women_capacity: int
    men_committed: int
    women_committed: int
    men_available: int
    women_available: int
    occupancy_rate: float
    reservations_by_status: Dict[str, int]


class NetworkStatisticsDTO(BaseModel):
    """Сводка по всей сети приютов."""

    total_hostels: int
    active_hostels: int
    inactive_hostels: int
    total_capacity: int
    total_men_capacity: int
    total_women_capacity: int
    total_reservations: int
    reservations_by_status: Dict[str, int]
    arrivals_today: int
    arrivals_this_week: int
    arrivals_this_month: int


# Сервисы приложения


class LodgingApplicationService:
    """Сервис приложения для работы с бронированиями проживания."""

    def __init__(
        self,
        uow: ports.ILodgingUnitOfWork,
        machine: LodgingReservationMachine,
        ledger: CapacityLedger,
        event_bus: Optional[shared_ports.IEventBus] = None,
        logger: Optional[shared_ports.ILogger] = None,
    ):
        """Инициализирует сервис."""
        self._uow = uow
        self._machine = machine
        self._ledger = ledger
        self._event_bus = event_bus
        self._logger = logger or get_logger(__name__)

    @property
    def uow(self) -> ports.ILodgingUnitOfWork:
        return self._uow

    def create_reservation(
        self, request: CreateLodgingReservationRequest
    ) -> LodgingReservationDTO:
        """Создает бронирование проживания."""
        hostel = self._get_hostel(request.hostel_id)
        user = self._get_user(request.user_id)

        try:
            reservation = self._machine.create(
                hostel=hostel,
                user=user,
                type=request.type,
                men_quantity=request.men_quantity,
                women_quantity=request.women_quantity,
                arrival_date=request.arrival_date,
            )
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise

        self._publish(reservation)
        return LodgingReservationDTO.from_domain(reservation)

    def change_status(
        self, request: ChangeLodgingStatusRequest
    ) -> LodgingReservationDTO:
        """Меняет статус бронирования проживания."""
        reservation = self._get_reservation(request.reservation_id)

        try:
            self._machine.transition(reservation, request.target_status)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise

        self._publish(reservation)
        return LodgingReservationDTO.from_domain(reservation)

    def delete_reservation(self, reservation_id: EntityId) -> None:
        """Удаляет бронирование в конечном статусе."""
        reservation = self._get_reservation(reservation_id)

        try:
            self._machine.delete(reservation)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise

    def get_reservation(self, reservation_id: EntityId) -> LodgingReservationDTO:
        """Возвращает информацию о бронировании."""
        return LodgingReservationDTO.from_domain(self._get_reservation(reservation_id))

    def list_reservations(
        self,
        hostel_id: Optional[EntityId] = None,
        status: Optional[LodgingStatus] = None,
    ) -> List[LodgingReservationDTO]:
        """Возвращает список бронирований с фильтрацией."""
        reservations = self._uow.reservations.find(hostel_id=hostel_id, status=status)
        return [LodgingReservationDTO.from_domain(r) for r in reservations]

    def allowed_transitions(self, reservation_id: EntityId) -> List[LodgingStatus]:
        """Статусы, в которые можно перевести бронирование из текущего."""
        reservation = self._get_reservation(reservation_id)
        return sorted(reservation.allowed_transitions(), key=lambda s: s.value)

    def available_capacity(self, hostel_id: EntityId, on: date) -> CapacityDTO:
        """Возвращает свободные места приюта на дату."""
        self._get_hostel(hostel_id)
        return CapacityDTO(
            hostel_id=hostel_id,
            date=on,
            men_available=self._ledger.available(hostel_id, on, Gender.MALE),
            women_available=self._ledger.available(hostel_id, on, Gender.FEMALE),
        )

    def _publish(self, reservation: LodgingReservation) -> None:
        events = reservation.pull_domain_events()
        if self._event_bus is not None:
            self._event_bus.publish_all(events)

    def _get_hostel(self, hostel_id: EntityId) -> Hostel:
        hostel = self._uow.hostels.get_by_id(hostel_id)
        if hostel is None:
            raise EntityNotFound(
                f"Приют {hostel_id} не найден", field="hostel_id", value=str(hostel_id)
            )
        return hostel

    def _get_user(self, user_id: EntityId) -> User:
        user = self._uow.users.get_by_id(user_id)
        if user is None:
            raise EntityNotFound(
                f"Пользователь {user_id} не найден", field="user_id", value=str(user_id)
            )
        return user

    def _get_reservation(self, reservation_id: EntityId) -> LodgingReservation:
        reservation = self._uow.reservations.get_by_id(reservation_id)
        if reservation is None:
            raise EntityNotFound(
                f"Бронирование {reservation_id} не найдено",
                field="reservation_id",
                value=str(reservation_id),
            )
        return reservation


class HostelAdministrationService:
    """Сервис приложения для администрирования приютов и пользователей."""

    def __init__(
        self,
        uow: ports.ILodgingUnitOfWork,
        ledger: CapacityLedger,
        service_reservations: Optional[ports.IHostelServiceReservations] = None,
        logger: Optional[shared_ports.ILogger] = None,
    ):
        """Инициализирует сервис."""
        self._uow = uow
        self._ledger = ledger
        self._service_reservations = service_reservations
        self._logger = logger or get_logger(__name__)

    def register_user(self, gender: Gender, user_id: Optional[EntityId] = None) -> User:
        """Регистрирует проекцию пользователя внешней системы."""
        user = User(gender=gender) if user_id is None else User(id=user_id, gender=gender)
        try:
            self._uow.users.add(user)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        return user

    def register_hostel(
        self, name: str, men_capacity: int, women_capacity: int, is_active: bool = True
    ) -> HostelDTO:
        """Регистрирует новый приют."""
        self._ledger.check_capacity(men_capacity, women_capacity)
        hostel = Hostel(
            name=name,
            men_capacity=men_capacity,
            women_capacity=women_capacity,
            is_active=is_active,
        )
        try:
            self._uow.hostels.add(hostel)
            self._ledger.register_hostel(hostel.id, men_capacity, women_capacity)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise

        self._logger.info(
            "Hostel registered",
            hostel_id=str(hostel.id),
            men_capacity=men_capacity,
            women_capacity=women_capacity,
        )
        return HostelDTO.from_domain(hostel)

    def update_capacity(
        self, hostel_id: EntityId, men_capacity: int, women_capacity: int
    ) -> HostelDTO:
        """Изменяет вместимость приюта, не опускаясь ниже занятых мест."""
        hostel = self._get_hostel(hostel_id)
        try:
            self._ledger.set_capacity(hostel_id, men_capacity, women_capacity)
            hostel.men_capacity = men_capacity
            hostel.women_capacity = women_capacity
            self._uow.hostels.update(hostel)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        return HostelDTO.from_domain(hostel)

    def delete_hostel(self, hostel_id: EntityId) -> None:
        """Удаляет приют без активных бронирований вместе с его историей.

        Проверка и удаление выполняются под блокировкой приюта, поэтому
        параллельно созданная бронь либо видна проверке, либо не создается.
        """
        with self._ledger.hold_hostel(hostel_id):
            self._get_hostel(hostel_id)
            reservations = self._uow.reservations.find(hostel_id=hostel_id)

            active = [
                r for r in reservations if r.status not in TERMINAL_LODGING_STATUSES
            ]
            if active:
                raise IllegalDelete(
                    f"У приюта {len(active)} активных бронирований проживания",
                    field="hostel_id",
                    value=str(hostel_id),
                )
            if (
                self._service_reservations is not None
                and self._service_reservations.has_active_reservations_for_hostel(
                    hostel_id
                )
            ):
                raise IllegalDelete(
                    "У приюта есть активные бронирования услуг",
                    field="hostel_id",
                    value=str(hostel_id),
                )

            try:
                for reservation in reservations:
                    self._uow.reservations.delete(reservation.id)
                if self._service_reservations is not None:
                    self._service_reservations.unbind_hostel(hostel_id)
                self._uow.hostels.delete(hostel_id)
                self._ledger.forget_hostel(hostel_id)
                self._uow.commit()
            except Exception:
                self._uow.rollback()
                raise

        self._logger.info("Hostel deleted", hostel_id=str(hostel_id))

    def get_hostel(self, hostel_id: EntityId) -> HostelDTO:
        return HostelDTO.from_domain(self._get_hostel(hostel_id))

    def hostel_statistics(self, hostel_id: EntityId, on: date) -> HostelStatisticsDTO:
        """Возвращает загрузку приюта на дату."""
        hostel = self._get_hostel(hostel_id)
        men_committed = self._ledger.committed(hostel_id, on, Gender.MALE)
        women_committed = self._ledger.committed(hostel_id, on, Gender.FEMALE)
        by_status = Counter(
            r.status.value
            for r in self._uow.reservations.find(hostel_id=hostel_id)
            if r.arrival_date == on
        )
        total = hostel.total_capacity
        return HostelStatisticsDTO(
            hostel_id=hostel_id,
            date=on,
            men_capacity=hostel.men_capacity,
            women_capacity=hostel.women_capacity,
            men_committed=men_committed,
            women_committed=women_committed,
            men_available=hostel.men_capacity - men_committed,
            women_available=hostel.women_capacity - women_committed,
            occupancy_rate=(men_committed + women_committed) / total if total else 0.0,
            reservations_by_status=dict(by_status),
        )

    def network_statistics(self, as_of: date) -> NetworkStatisticsDTO:
        """Возвращает сводку по всем приютам и бронированиям."""
        hostels = self._uow.hostels.list()
        reservations = self._uow.reservations.find()
        active = sum(1 for h in hostels if h.is_active)
        iso_week = as_of.isocalendar()[:2]

        return NetworkStatisticsDTO(
            total_hostels=len(hostels),
            active_hostels=active,
            inactive_hostels=len(hostels) - active,
            total_capacity=sum(h.total_capacity for h in hostels),
            total_men_capacity=sum(h.men_capacity for h in hostels),
            total_women_capacity=sum(h.women_capacity for h in hostels),
            total_reservations=len(reservations),
            reservations_by_status=dict(Counter(r.status.value for r in reservations)),
            arrivals_today=sum(1 for r in reservations if r.arrival_date == as_of),
            arrivals_this_week=sum(
                1 for r in reservations if r.arrival_date.isocalendar()[:2] == iso_week
            ),
            arrivals_this_month=sum(
                1
                for r in reservations
                if (r.arrival_date.year, r.arrival_date.month)
                == (as_of.year, as_of.month)
            ),
        )

    def _get_hostel(self, hostel_id: EntityId) -> Hostel:
        hostel = self._uow.hostels.get_by_id(hostel_id)
        if hostel is None:
            raise EntityNotFound(
                f"Приют {hostel_id} не найден", field="hostel_id", value=str(hostel_id)
            )
        return hostel
