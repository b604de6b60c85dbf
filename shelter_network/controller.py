"""
Граница ядра бронирований.

Контроллер принимает простые данные от внешнего слоя (идентификаторы,
строковые значения перечислений, даты) и возвращает Result: доменные
исключения, включая некорректную вместимость приюта и длительность
услуги, превращаются в структурированные ошибки и дальше не
пробрасываются. Аргументы неверного типа (например, строка вместо
числа) считаются ошибкой вызывающего кода: pydantic.ValidationError
пробрасывается как есть.
"""

from datetime import date, datetime, time
from typing import Any, Callable, List, Optional, Type, TypeVar, Union
from uuid import UUID

from .lodging.application import (
    CapacityDTO,
    ChangeLodgingStatusRequest,
    CreateLodgingReservationRequest,
    HostelAdministrationService,
    HostelDTO,
    HostelStatisticsDTO,
    LodgingApplicationService,
    LodgingReservationDTO,
    NetworkStatisticsDTO,
)
from .lodging.domain import LodgingStatus
from .services.application import (
    CreateServiceReservationRequest,
    RegisterServiceRequest,
    ServiceApplicationService,
    ServiceReservationDTO,
)
from .services.domain import HostelService, Service, ServiceStatus
from .services.scheduling import ServiceSchedule
from .shared_kernel import (
    DomainException,
    EntityId,
    EntityNotFound,
    Gender,
    InvalidPartySize,
    InvalidTransition,
    ReservationType,
    Result,
    User,
)
from .shared_kernel import interfaces as shared_ports
from .shared_kernel.infrastructure import get_logger

T = TypeVar("T")
E = TypeVar("E")

IdLike = Union[EntityId, str]


def _parse_id(value: IdLike, field: str) -> EntityId:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise EntityNotFound(
            f"Некорректный идентификатор: {value}", field=field, value=str(value)
        ) from None


def _parse_type(value: Any) -> ReservationType:
    try:
        return ReservationType(value)
    except ValueError:
        raise InvalidPartySize(
            "reservation_type",
            f"Неизвестный тип бронирования: {value}",
            field="type",
            value=str(value),
        ) from None


def _parse_gender(value: Any) -> Gender:
    try:
        return Gender(value)
    except ValueError:
        raise InvalidPartySize(
            "gender", f"Неизвестный пол: {value}", field="gender", value=str(value)
        ) from None


def _parse_status(enum_cls: Type[E], value: Any) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidTransition(
            f"Неизвестный статус: {value}", field="status", value=str(value)
        ) from None


class ReservationController:
    """Точка входа для внешнего слоя (API, админка, фоновые задачи)."""

    def __init__(
        self,
        lodging: LodgingApplicationService,
        hostels: HostelAdministrationService,
        services: ServiceApplicationService,
        logger: Optional[shared_ports.ILogger] = None,
    ):
        self._lodging = lodging
        self._hostels = hostels
        self._services = services
        self._logger = logger or get_logger(__name__)

    def _run(self, operation: str, action: Callable[[], T]) -> Result[T]:
        try:
            return Result.success(action())
        except DomainException as e:
            self._logger.info(
                f"{operation} rejected",
                kind=e.kind.value,
                field=e.field,
                reason=e.message,
            )
            return Result.failure(e)

    # --- Бронирования проживания ---

    def create_lodging_reservation(
        self,
        hostel_id: IdLike,
        user_id: IdLike,
        type: Union[ReservationType, str],
        men_quantity: int,
        women_quantity: int,
        arrival_date: date,
    ) -> Result[EntityId]:
        """Создает бронирование проживания и возвращает его идентификатор."""

        def action() -> EntityId:
            request = CreateLodgingReservationRequest(
                hostel_id=_parse_id(hostel_id, "hostel_id"),
                user_id=_parse_id(user_id, "user_id"),
                type=_parse_type(type),
                men_quantity=men_quantity,
                women_quantity=women_quantity,
                arrival_date=arrival_date,
            )
            return self._lodging.create_reservation(request).id

        return self._run("create_lodging_reservation", action)

    def change_lodging_status(
        self, reservation_id: IdLike, target_status: Union[LodgingStatus, str]
    ) -> Result[None]:
        def action() -> None:
            self._lodging.change_status(
                ChangeLodgingStatusRequest(
                    reservation_id=_parse_id(reservation_id, "reservation_id"),
                    target_status=_parse_status(LodgingStatus, target_status),
                )
            )

        return self._run("change_lodging_status", action)

    def delete_lodging_reservation(self, reservation_id: IdLike) -> Result[None]:
        return self._run(
            "delete_lodging_reservation",
            lambda: self._lodging.delete_reservation(
                _parse_id(reservation_id, "reservation_id")
            ),
        )

    def get_lodging_reservation(
        self, reservation_id: IdLike
    ) -> Result[LodgingReservationDTO]:
        return self._run(
            "get_lodging_reservation",
            lambda: self._lodging.get_reservation(
                _parse_id(reservation_id, "reservation_id")
            ),
        )

    def list_lodging_reservations(
        self,
        hostel_id: Optional[IdLike] = None,
        status: Union[LodgingStatus, str, None] = None,
    ) -> Result[List[LodgingReservationDTO]]:
        return self._run(
            "list_lodging_reservations",
            lambda: self._lodging.list_reservations(
                hostel_id=None if hostel_id is None else _parse_id(hostel_id, "hostel_id"),
                status=None if status is None else _parse_status(LodgingStatus, status),
            ),
        )

    def allowed_lodging_transitions(
        self, reservation_id: IdLike
    ) -> Result[List[LodgingStatus]]:
        return self._run(
            "allowed_lodging_transitions",
            lambda: self._lodging.allowed_transitions(
                _parse_id(reservation_id, "reservation_id")
            ),
        )

    def query_available_capacity(
        self, hostel_id: IdLike, on: date
    ) -> Result[CapacityDTO]:
        """Свободные места мужчин и женщин в приюте на дату."""
        return self._run(
            "query_available_capacity",
            lambda: self._lodging.available_capacity(_parse_id(hostel_id, "hostel_id"), on),
        )

    # --- Бронирования услуг ---

    def create_service_reservation(
        self,
        user_id: IdLike,
        hostel_service_id: IdLike,
        type: Union[ReservationType, str],
        men_quantity: int,
        women_quantity: int,
        datetime_reserved: datetime,
        duration_minutes: Optional[int] = None,
    ) -> Result[EntityId]:
        """Создает бронирование услуги и возвращает его идентификатор."""

        def action() -> EntityId:
            request = CreateServiceReservationRequest(
                user_id=_parse_id(user_id, "user_id"),
                hostel_service_id=_parse_id(hostel_service_id, "hostel_service_id"),
                type=_parse_type(type),
                men_quantity=men_quantity,
                women_quantity=women_quantity,
                datetime_reserved=datetime_reserved,
                duration_minutes=duration_minutes,
            )
            return self._services.create_reservation(request).id

        return self._run("create_service_reservation", action)

    def change_service_status(
        self, reservation_id: IdLike, target_status: Union[ServiceStatus, str]
    ) -> Result[None]:
        def action() -> None:
            self._services.change_status(
                _parse_id(reservation_id, "reservation_id"),
                _parse_status(ServiceStatus, target_status),
            )

        return self._run("change_service_status", action)

    def change_service_status_bulk(
        self, reservation_ids: List[IdLike], target_status: Union[ServiceStatus, str]
    ) -> List[Result[ServiceReservationDTO]]:
        """Меняет статус нескольких бронирований услуг, результат по каждому."""
        try:
            target = _parse_status(ServiceStatus, target_status)
        except DomainException as e:
            return [Result.failure(e) for _ in reservation_ids]

        results: List[Result[ServiceReservationDTO]] = []
        for reservation_id in reservation_ids:
            try:
                parsed = _parse_id(reservation_id, "reservation_id")
            except DomainException as e:
                results.append(Result.failure(e))
                continue
            results.extend(self._services.change_status_bulk([parsed], target))
        return results

    def delete_service_reservation(self, reservation_id: IdLike) -> Result[None]:
        return self._run(
            "delete_service_reservation",
            lambda: self._services.delete_reservation(
                _parse_id(reservation_id, "reservation_id")
            ),
        )

    def get_service_reservation(
        self, reservation_id: IdLike
    ) -> Result[ServiceReservationDTO]:
        return self._run(
            "get_service_reservation",
            lambda: self._services.get_reservation(
                _parse_id(reservation_id, "reservation_id")
            ),
        )

    def list_service_reservations(
        self,
        hostel_service_id: Optional[IdLike] = None,
        status: Union[ServiceStatus, str, None] = None,
    ) -> Result[List[ServiceReservationDTO]]:
        return self._run(
            "list_service_reservations",
            lambda: self._services.list_reservations(
                hostel_service_id=(
                    None
                    if hostel_service_id is None
                    else _parse_id(hostel_service_id, "hostel_service_id")
                ),
                status=None if status is None else _parse_status(ServiceStatus, status),
            ),
        )

    def allowed_service_transitions(
        self, reservation_id: IdLike
    ) -> Result[List[ServiceStatus]]:
        return self._run(
            "allowed_service_transitions",
            lambda: self._services.allowed_transitions(
                _parse_id(reservation_id, "reservation_id")
            ),
        )

    def query_expired_service_reservations(
        self, as_of: datetime
    ) -> Result[List[EntityId]]:
        """Просроченные бронирования услуг. Ничего не изменяет."""
        return self._run(
            "query_expired_service_reservations",
            lambda: self._services.expired_reservations(as_of),
        )

    def available_service_slots(
        self, hostel_service_id: IdLike, day: date
    ) -> Result[List[datetime]]:
        return self._run(
            "available_service_slots",
            lambda: self._services.available_slots(
                _parse_id(hostel_service_id, "hostel_service_id"), day
            ),
        )

    # --- Администрирование ---

    def register_user(self, gender: Union[Gender, str]) -> Result[User]:
        return self._run(
            "register_user", lambda: self._hostels.register_user(_parse_gender(gender))
        )

    def register_hostel(
        self, name: str, men_capacity: int, women_capacity: int
    ) -> Result[HostelDTO]:
        return self._run(
            "register_hostel",
            lambda: self._hostels.register_hostel(name, men_capacity, women_capacity),
        )

    def update_hostel_capacity(
        self, hostel_id: IdLike, men_capacity: int, women_capacity: int
    ) -> Result[HostelDTO]:
        return self._run(
            "update_hostel_capacity",
            lambda: self._hostels.update_capacity(
                _parse_id(hostel_id, "hostel_id"), men_capacity, women_capacity
            ),
        )

    def delete_hostel(self, hostel_id: IdLike) -> Result[None]:
        return self._run(
            "delete_hostel",
            lambda: self._hostels.delete_hostel(_parse_id(hostel_id, "hostel_id")),
        )

    def hostel_statistics(
        self, hostel_id: IdLike, on: date
    ) -> Result[HostelStatisticsDTO]:
        return self._run(
            "hostel_statistics",
            lambda: self._hostels.hostel_statistics(_parse_id(hostel_id, "hostel_id"), on),
        )

    def network_statistics(self, as_of: date) -> Result[NetworkStatisticsDTO]:
        return self._run(
            "network_statistics", lambda: self._hostels.network_statistics(as_of)
        )

    def register_service(
        self,
        name: str,
        max_time_minutes: int,
        reservation_type: Union[ReservationType, str] = ReservationType.INDIVIDUAL,
        price: float = 0,
        needs_approval: bool = False,
        description: str = "",
    ) -> Result[Service]:
        return self._run(
            "register_service",
            lambda: self._services.register_service(
                RegisterServiceRequest(
                    name=name,
                    description=description,
                    price=price,
                    max_time_minutes=max_time_minutes,
                    needs_approval=needs_approval,
                    reservation_type=_parse_type(reservation_type),
                )
            ),
        )

    def register_schedule(
        self,
        start_time: time,
        end_time: time,
        day_of_week: int = 0,
        is_available: bool = True,
    ) -> Result[ServiceSchedule]:
        return self._run(
            "register_schedule",
            lambda: self._services.register_schedule(
                start_time, end_time, day_of_week=day_of_week, is_available=is_available
            ),
        )

    def bind_service(
        self, hostel_id: IdLike, service_id: IdLike, schedule_id: IdLike
    ) -> Result[HostelService]:
        return self._run(
            "bind_service",
            lambda: self._services.bind_service(
                _parse_id(hostel_id, "hostel_id"),
                _parse_id(service_id, "service_id"),
                _parse_id(schedule_id, "schedule_id"),
            ),
        )
