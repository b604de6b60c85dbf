"""
Интерфейсы (порты) для контекста проживания.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Protocol

from ..shared_kernel import EntityId
from ..shared_kernel.interfaces import IUserRepository

if TYPE_CHECKING:
    from .domain import Hostel, LodgingReservation, LodgingStatus


class IHostelRepository(Protocol):
    """Интерфейс репозитория приютов."""

    def add(self, hostel: Hostel) -> None: ...
    def get_by_id(self, hostel_id: EntityId) -> Optional[Hostel]: ...
    def update(self, hostel: Hostel) -> None: ...
    def delete(self, hostel_id: EntityId) -> None: ...
    def list(self) -> List[Hostel]: ...


class ILodgingReservationRepository(Protocol):
    """Интерфейс репозитория бронирований проживания."""

    def add(self, reservation: LodgingReservation) -> None: ...
    def get_by_id(self, reservation_id: EntityId) -> Optional[LodgingReservation]: ...
    def update(self, reservation: LodgingReservation) -> None: ...
    def delete(self, reservation_id: EntityId) -> None: ...
    def find(
        self,
        hostel_id: Optional[EntityId] = None,
        status: Optional[LodgingStatus] = None,
    ) -> List[LodgingReservation]: ...


class IHostelServiceReservations(Protocol):
    """Связь с контекстом услуг при удалении приюта."""

    def has_active_reservations_for_hostel(self, hostel_id: EntityId) -> bool: ...
    def unbind_hostel(self, hostel_id: EntityId) -> None: ...


class ILodgingUnitOfWork(Protocol):
    """Интерфейс Unit of Work для контекста проживания."""

    @property
    def hostels(self) -> IHostelRepository: ...
    @property
    def reservations(self) -> ILodgingReservationRepository: ...
    @property
    def users(self) -> IUserRepository: ...

    def __enter__(self) -> ILodgingUnitOfWork: ...
    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
