"""
Инфраструктурный слой контекста проживания.

Содержит реализации репозиториев в памяти и единицу работы.
"""

import threading
from typing import Dict, List, Optional

from ..shared_kernel import EntityId
from ..shared_kernel import interfaces as shared_ports
from ..shared_kernel.infrastructure import InMemoryUserRepository, get_logger
from . import interfaces as ports
from .domain import Hostel, LodgingReservation, LodgingStatus


class InMemoryHostelRepository(ports.IHostelRepository):
    """Реализация репозитория приютов в памяти."""

    def __init__(self) -> None:
        self._hostels: Dict[EntityId, Hostel] = {}
        self._lock = threading.RLock()

    def add(self, hostel: Hostel) -> None:
        with self._lock:
            if hostel.id in self._hostels:
                raise ValueError(f"Hostel with id {hostel.id} already exists")
            self._hostels[hostel.id] = hostel

    def get_by_id(self, hostel_id: EntityId) -> Optional[Hostel]:
        return self._hostels.get(hostel_id)

    def update(self, hostel: Hostel) -> None:
        with self._lock:
            if hostel.id not in self._hostels:
                raise KeyError(f"Hostel with id {hostel.id} not found")
            self._hostels[hostel.id] = hostel

    def delete(self, hostel_id: EntityId) -> None:
        with self._lock:
            self._hostels.pop(hostel_id, None)

    def list(self) -> List[Hostel]:
        with self._lock:
            return list(self._hostels.values())


class InMemoryLodgingReservationRepository(ports.ILodgingReservationRepository):
    """Реализация репозитория бронирований проживания в памяти."""

    def __init__(self) -> None:
        self._reservations: Dict[EntityId, LodgingReservation] = {}
        self._lock = threading.RLock()

    def add(self, reservation: LodgingReservation) -> None:
        with self._lock:
            if reservation.id in self._reservations:
                raise ValueError(f"Reservation with id {reservation.id} already exists")
            self._reservations[reservation.id] = reservation

    def get_by_id(self, reservation_id: EntityId) -> Optional[LodgingReservation]:
        return self._reservations.get(reservation_id)

    def update(self, reservation: LodgingReservation) -> None:
        with self._lock:
            if reservation.id not in self._reservations:
                raise KeyError(f"Reservation with id {reservation.id} not found")
            self._reservations[reservation.id] = reservation

    def delete(self, reservation_id: EntityId) -> None:
        with self._lock:
            self._reservations.pop(reservation_id, None)

    def find(
        self,
        hostel_id: Optional[EntityId] = None,
        status: Optional[LodgingStatus] = None,
    ) -> List[LodgingReservation]:
        with self._lock:
            return [
                reservation
                for reservation in self._reservations.values()
                if (hostel_id is None or reservation.hostel_id == hostel_id)
                and (status is None or reservation.status == status)
            ]


class LodgingUnitOfWork(ports.ILodgingUnitOfWork):
    """Единица работы для контекста проживания."""

    def __init__(
        self,
        hostels_repo: Optional[ports.IHostelRepository] = None,
        reservations_repo: Optional[ports.ILodgingReservationRepository] = None,
        users_repo: Optional[shared_ports.IUserRepository] = None,
        logger: Optional[shared_ports.ILogger] = None,
    ):
        self._hostels = hostels_repo or InMemoryHostelRepository()
        self._reservations = reservations_repo or InMemoryLodgingReservationRepository()
        self._users = users_repo or InMemoryUserRepository()
        self._logger = logger or get_logger(__name__)
        self._committed = False

    @property
    def hostels(self) -> ports.IHostelRepository:
        return self._hostels

    @property
    def reservations(self) -> ports.ILodgingReservationRepository:
        return self._reservations

    @property
    def users(self) -> shared_ports.IUserRepository:
        return self._users

    def commit(self) -> None:
        """Фиксирует все изменения."""
        # Репозитории в памяти применяют изменения сразу
        self._committed = True
        self._logger.debug("LodgingUnitOfWork committed")

    def rollback(self) -> None:
        """Откатывает все изменения."""
        self._committed = False
        self._logger.warning("LodgingUnitOfWork rolled back")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False  # Пробрасываем исключение дальше, если оно было
