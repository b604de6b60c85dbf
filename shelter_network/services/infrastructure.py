"""
Инфраструктурный слой контекста услуг.

Содержит репозитории в памяти, единицу работы и адаптер, через который
контекст проживания узнает об активных бронированиях услуг приюта.
"""

import threading
from typing import Dict, List, Optional

from ..shared_kernel import EntityId
from ..shared_kernel import interfaces as shared_ports
from ..shared_kernel.infrastructure import InMemoryUserRepository, get_logger
from . import interfaces as ports
from .domain import HostelService, Service, ServiceReservation, ServiceStatus
from .scheduling import ServiceSchedule


class InMemoryServiceRepository(ports.IServiceRepository):
    """Реализация репозитория услуг в памяти."""

    def __init__(self) -> None:
        self._services: Dict[EntityId, Service] = {}

    def add(self, service: Service) -> None:
        if service.id in self._services:
            raise ValueError(f"Service with id {service.id} already exists")
        self._services[service.id] = service

    def get_by_id(self, service_id: EntityId) -> Optional[Service]:
        return self._services.get(service_id)

    def list(self) -> List[Service]:
        return list(self._services.values())


class InMemoryScheduleRepository(ports.IScheduleRepository):
    """Реализация репозитория расписаний в памяти."""

    def __init__(self) -> None:
        self._schedules: Dict[EntityId, ServiceSchedule] = {}

    def add(self, schedule: ServiceSchedule) -> None:
        if schedule.id in self._schedules:
            raise ValueError(f"Schedule with id {schedule.id} already exists")
        self._schedules[schedule.id] = schedule

    def get_by_id(self, schedule_id: EntityId) -> Optional[ServiceSchedule]:
        return self._schedules.get(schedule_id)


class InMemoryHostelServiceRepository(ports.IHostelServiceRepository):
    """Реализация репозитория привязок услуг в памяти."""

    def __init__(self) -> None:
        self._bindings: Dict[EntityId, HostelService] = {}
        self._lock = threading.RLock()

    def add(self, hostel_service: HostelService) -> None:
        with self._lock:
            if hostel_service.id in self._bindings:
                raise ValueError(
                    f"Hostel service with id {hostel_service.id} already exists"
                )
            self._bindings[hostel_service.id] = hostel_service

    def get_by_id(self, hostel_service_id: EntityId) -> Optional[HostelService]:
        return self._bindings.get(hostel_service_id)

    def update(self, hostel_service: HostelService) -> None:
        with self._lock:
            if hostel_service.id not in self._bindings:
                raise KeyError(f"Hostel service with id {hostel_service.id} not found")
            self._bindings[hostel_service.id] = hostel_service

    def find_by_hostel(self, hostel_id: EntityId) -> List[HostelService]:
        with self._lock:
            return [b for b in self._bindings.values() if b.hostel_id == hostel_id]


class InMemoryServiceReservationRepository(ports.IServiceReservationRepository):
    """Реализация репозитория бронирований услуг в памяти."""

    def __init__(self) -> None:
        self._reservations: Dict[EntityId, ServiceReservation] = {}
        self._lock = threading.RLock()

    def add(self, reservation: ServiceReservation) -> None:
        with self._lock:
            if reservation.id in self._reservations:
                raise ValueError(f"Reservation with id {reservation.id} already exists")
            self._reservations[reservation.id] = reservation

    def get_by_id(self, reservation_id: EntityId) -> Optional[ServiceReservation]:
        return self._reservations.get(reservation_id)

    def update(self, reservation: ServiceReservation) -> None:
        with self._lock:
            if reservation.id not in self._reservations:
                raise KeyError(f"Reservation with id {reservation.id} not found")
            self._reservations[reservation.id] = reservation

    def delete(self, reservation_id: EntityId) -> None:
        with self._lock:
            self._reservations.pop(reservation_id, None)

    def find(
        self,
        hostel_service_id: Optional[EntityId] = None,
        status: Optional[ServiceStatus] = None,
    ) -> List[ServiceReservation]:
        with self._lock:
            return [
                reservation
                for reservation in self._reservations.values()
                if (
                    hostel_service_id is None
                    or reservation.hostel_service_id == hostel_service_id
                )
                and (status is None or reservation.status == status)
            ]


class ServiceUnitOfWork(ports.IServiceUnitOfWork):
    """Единица работы для контекста услуг."""

    def __init__(
        self,
        services_repo: Optional[ports.IServiceRepository] = None,
        schedules_repo: Optional[ports.IScheduleRepository] = None,
        hostel_services_repo: Optional[ports.IHostelServiceRepository] = None,
        reservations_repo: Optional[ports.IServiceReservationRepository] = None,
        users_repo: Optional[shared_ports.IUserRepository] = None,
        logger: Optional[shared_ports.ILogger] = None,
    ):
        self._services = services_repo or InMemoryServiceRepository()
        self._schedules = schedules_repo or InMemoryScheduleRepository()
        self._hostel_services = (
            hostel_services_repo or InMemoryHostelServiceRepository()
        )
        self._reservations = reservations_repo or InMemoryServiceReservationRepository()
        self._users = users_repo or InMemoryUserRepository()
        self._logger = logger or get_logger(__name__)
        self._committed = False

    @property
    def services(self) -> ports.IServiceRepository:
        return self._services

    @property
    def schedules(self) -> ports.IScheduleRepository:
        return self._schedules

    @property
    def hostel_services(self) -> ports.IHostelServiceRepository:
        return self._hostel_services

    @property
    def reservations(self) -> ports.IServiceReservationRepository:
        return self._reservations

    @property
    def users(self) -> shared_ports.IUserRepository:
        return self._users

    def commit(self) -> None:
        """Фиксирует все изменения."""
        self._committed = True
        self._logger.debug("ServiceUnitOfWork committed")

    def rollback(self) -> None:
        """Откатывает все изменения."""
        self._committed = False
        self._logger.warning("ServiceUnitOfWork rolled back")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False


class HostelServiceReservationsAdapter:
    """Адаптер контекста услуг для проверок при удалении приюта."""

    def __init__(self, uow: ports.IServiceUnitOfWork):
        self._uow = uow

    def has_active_reservations_for_hostel(self, hostel_id: EntityId) -> bool:
        for binding in self._uow.hostel_services.find_by_hostel(hostel_id):
            for reservation in self._uow.reservations.find(hostel_service_id=binding.id):
                if not reservation.is_terminal:
                    return True
        return False

    def unbind_hostel(self, hostel_id: EntityId) -> None:
        """Отключает все услуги удаленного приюта."""
        for binding in self._uow.hostel_services.find_by_hostel(hostel_id):
            if binding.is_active:
                binding.is_active = False
                self._uow.hostel_services.update(binding)
