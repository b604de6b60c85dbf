"""
Интерфейсы (порты) для контекста услуг.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Protocol

from ..shared_kernel import EntityId
from ..shared_kernel.interfaces import IUserRepository

if TYPE_CHECKING:
    from .domain import HostelService, Service, ServiceReservation, ServiceStatus
    from .scheduling import ServiceSchedule


class IServiceRepository(Protocol):
    """Интерфейс репозитория услуг."""

    def add(self, service: Service) -> None: ...
    def get_by_id(self, service_id: EntityId) -> Optional[Service]: ...
    def list(self) -> List[Service]: ...


class IScheduleRepository(Protocol):
    """Интерфейс репозитория расписаний."""

    def add(self, schedule: ServiceSchedule) -> None: ...
    def get_by_id(self, schedule_id: EntityId) -> Optional[ServiceSchedule]: ...


class IHostelServiceRepository(Protocol):
    """Интерфейс репозитория привязок услуг к приютам."""

    def add(self, hostel_service: HostelService) -> None: ...
    def get_by_id(self, hostel_service_id: EntityId) -> Optional[HostelService]: ...
    def update(self, hostel_service: HostelService) -> None: ...
    def find_by_hostel(self, hostel_id: EntityId) -> List[HostelService]: ...


class IServiceReservationRepository(Protocol):
    """Интерфейс репозитория бронирований услуг."""

    def add(self, reservation: ServiceReservation) -> None: ...
    def get_by_id(self, reservation_id: EntityId) -> Optional[ServiceReservation]: ...
    def update(self, reservation: ServiceReservation) -> None: ...
    def delete(self, reservation_id: EntityId) -> None: ...
    def find(
        self,
        hostel_service_id: Optional[EntityId] = None,
        status: Optional[ServiceStatus] = None,
    ) -> List[ServiceReservation]: ...


class IServiceUnitOfWork(Protocol):
    """Интерфейс Unit of Work для контекста услуг."""

    @property
    def services(self) -> IServiceRepository: ...
    @property
    def schedules(self) -> IScheduleRepository: ...
    @property
    def hostel_services(self) -> IHostelServiceRepository: ...
    @property
    def reservations(self) -> IServiceReservationRepository: ...
    @property
    def users(self) -> IUserRepository: ...

    def __enter__(self) -> IServiceUnitOfWork: ...
    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
