"""
Прикладной слой контекста услуг.

Содержит сервисы приложения для регистрации услуг и расписаний,
привязки услуг к приютам и жизненного цикла бронирований услуг.
"""

from datetime import date, datetime, time
from typing import Callable, List, Optional

from pydantic import BaseModel, ValidationError

from ..shared_kernel import (
    DomainException,
    EntityId,
    EntityNotFound,
    InvalidSchedule,
    ReservationType,
    Result,
    User,
    as_utc,
)
from ..shared_kernel import interfaces as shared_ports
from ..shared_kernel.infrastructure import get_logger
from . import interfaces as ports
from .domain import (
    HostelService,
    Service,
    ServiceReservation,
    ServiceReservationMachine,
    ServiceStatus,
)
from .scheduling import ScheduleAvailability, ServiceSchedule

# DTO (Data Transfer Objects) для входящих данных


class CreateServiceReservationRequest(BaseModel):
    """Запрос на создание бронирования услуги."""

    user_id: EntityId
    hostel_service_id: EntityId
    type: ReservationType
    men_quantity: int
    women_quantity: int
    datetime_reserved: datetime
    duration_minutes: Optional[int] = None


class RegisterServiceRequest(BaseModel):
    """Запрос на регистрацию услуги."""

    name: str
    description: str = ""
    price: float = 0
    max_time_minutes: int
    needs_approval: bool = False
    reservation_type: ReservationType = ReservationType.INDIVIDUAL
    is_active: bool = True


# DTO для исходящих данных


class ServiceReservationDTO(BaseModel):
    """DTO для представления бронирования услуги."""

    id: EntityId
    user_id: EntityId
    hostel_service_id: EntityId
    type: ReservationType
    men_quantity: int
    women_quantity: int
    datetime_reserved: datetime
    duration_minutes: int
    ends_at: datetime
    status: ServiceStatus

    @classmethod
    def from_domain(cls, reservation: ServiceReservation) -> "ServiceReservationDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=reservation.id,
            user_id=reservation.user_id,
            hostel_service_id=reservation.hostel_service_id,
            type=reservation.type,
            men_quantity=reservation.men_quantity,
            women_quantity=reservation.women_quantity,
            datetime_reserved=reservation.datetime_reserved,
            duration_minutes=reservation.duration_minutes,
            ends_at=reservation.ends_at,
            status=reservation.status,
        )


class ServiceApplicationService:
    """Сервис приложения для работы с услугами и их бронированиями."""

    def __init__(
        self,
        uow: ports.IServiceUnitOfWork,
        machine: ServiceReservationMachine,
        hostel_exists: Optional[Callable[[EntityId], bool]] = None,
        event_bus: Optional[shared_ports.IEventBus] = None,
        logger: Optional[shared_ports.ILogger] = None,
    ):
        """Инициализирует сервис.

        Args:
            hostel_exists: функция проверки существования приюта при
                привязке услуги; без нее приют не проверяется
        """
        self._uow = uow
        self._machine = machine
        self._hostel_exists = hostel_exists
        self._event_bus = event_bus
        self._logger = logger or get_logger(__name__)

    @property
    def uow(self) -> ports.IServiceUnitOfWork:
        return self._uow

    # --- Справочники ---

    def register_service(self, request: RegisterServiceRequest) -> Service:
        """Регистрирует новую услугу."""
        try:
            service = Service(**request.model_dump())
        except ValidationError as e:
            error = e.errors()[0]
            raise InvalidSchedule(
                f"Некорректная услуга: {error['msg']}",
                field=str(error["loc"][0]) if error["loc"] else "service",
                value=str(error.get("input")),
            ) from e
        try:
            self._uow.services.add(service)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        self._logger.info(
            "Service registered", service_id=str(service.id), name=service.name
        )
        return service

    def register_schedule(
        self,
        start_time: time,
        end_time: time,
        day_of_week: int = 0,
        is_available: bool = True,
    ) -> ServiceSchedule:
        """Регистрирует расписание услуги."""
        try:
            schedule = ServiceSchedule(
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                is_available=is_available,
            )
        except ValidationError as e:
            raise InvalidSchedule(
                f"Некорректное расписание: {e.errors()[0]['msg']}",
                field="schedule",
                value=f"{start_time}-{end_time}",
            ) from e
        try:
            self._uow.schedules.add(schedule)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        return schedule

    def bind_service(
        self, hostel_id: EntityId, service_id: EntityId, schedule_id: EntityId
    ) -> HostelService:
        """Подключает услугу к приюту по расписанию."""
        if self._hostel_exists is not None and not self._hostel_exists(hostel_id):
            raise EntityNotFound(
                f"Приют {hostel_id} не найден", field="hostel_id", value=str(hostel_id)
            )
        self._get_service(service_id)
        self._get_schedule(schedule_id)

        binding = HostelService(
            hostel_id=hostel_id, service_id=service_id, schedule_id=schedule_id
        )
        try:
            self._uow.hostel_services.add(binding)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        self._logger.info(
            "Service bound to hostel",
            hostel_service_id=str(binding.id),
            hostel_id=str(hostel_id),
            service_id=str(service_id),
        )
        return binding

    def available_slots(
        self, hostel_service_id: EntityId, day: date
    ) -> List[datetime]:
        """Свободные по расписанию слоты услуги на дату."""
        binding = self._get_binding(hostel_service_id)
        service = self._get_service(binding.service_id)
        if not binding.is_active or not service.is_active:
            return []
        schedule = self._get_schedule(binding.schedule_id)
        return ScheduleAvailability.available_slots(
            schedule, day, service.max_time_minutes
        )

    # --- Бронирования ---

    def create_reservation(
        self, request: CreateServiceReservationRequest
    ) -> ServiceReservationDTO:
        """Создает бронирование услуги."""
        user = self._get_user(request.user_id)
        binding = self._get_binding(request.hostel_service_id)
        service = self._get_service(binding.service_id)
        schedule = self._get_schedule(binding.schedule_id)

        try:
            reservation = self._machine.create(
                user=user,
                hostel_service=binding,
                service=service,
                schedule=schedule,
                type=request.type,
                men_quantity=request.men_quantity,
                women_quantity=request.women_quantity,
                datetime_reserved=request.datetime_reserved,
                duration_minutes=request.duration_minutes,
            )
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise

        self._publish(reservation)
        return ServiceReservationDTO.from_domain(reservation)

    def change_status(
        self, reservation_id: EntityId, target_status: ServiceStatus
    ) -> ServiceReservationDTO:
        """Меняет статус бронирования услуги."""
        reservation = self._get_reservation(reservation_id)

        try:
            self._machine.transition(reservation, target_status)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise

        self._publish(reservation)
        return ServiceReservationDTO.from_domain(reservation)

    def change_status_bulk(
        self, reservation_ids: List[EntityId], target_status: ServiceStatus
    ) -> List[Result[ServiceReservationDTO]]:
        """Меняет статус нескольких бронирований, сообщая результат по каждому."""
        results: List[Result[ServiceReservationDTO]] = []
        for reservation_id in reservation_ids:
            try:
                results.append(
                    Result[ServiceReservationDTO].success(
                        self.change_status(reservation_id, target_status)
                    )
                )
            except DomainException as e:
                results.append(Result[ServiceReservationDTO].failure(e))
        return results

    def delete_reservation(self, reservation_id: EntityId) -> None:
        """Удаляет бронирование услуги в конечном статусе."""
        reservation = self._get_reservation(reservation_id)

        try:
            self._machine.delete(reservation)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise

    def get_reservation(self, reservation_id: EntityId) -> ServiceReservationDTO:
        """Возвращает информацию о бронировании услуги."""
        return ServiceReservationDTO.from_domain(self._get_reservation(reservation_id))

    def list_reservations(
        self,
        hostel_service_id: Optional[EntityId] = None,
        status: Optional[ServiceStatus] = None,
    ) -> List[ServiceReservationDTO]:
        """Возвращает список бронирований услуг с фильтрацией."""
        return [
            ServiceReservationDTO.from_domain(r)
            for r in self._uow.reservations.find(
                hostel_service_id=hostel_service_id, status=status
            )
        ]

    def allowed_transitions(self, reservation_id: EntityId) -> List[ServiceStatus]:
        """Статусы, в которые можно перевести бронирование из текущего."""
        reservation = self._get_reservation(reservation_id)
        return sorted(reservation.allowed_transitions(), key=lambda s: s.value)

    def expired_reservations(self, as_of: datetime) -> List[EntityId]:
        """Идентификаторы просроченных бронирований. Статусы не меняются."""
        reservations = sorted(
            self._uow.reservations.find(), key=lambda r: as_utc(r.datetime_reserved)
        )
        return [r.id for r in reservations if r.is_expired(as_of)]

    def _publish(self, reservation: ServiceReservation) -> None:
        events = reservation.pull_domain_events()
        if self._event_bus is not None:
            self._event_bus.publish_all(events)

    def _get_user(self, user_id: EntityId) -> User:
        user = self._uow.users.get_by_id(user_id)
        if user is None:
            raise EntityNotFound(
                f"Пользователь {user_id} не найден", field="user_id", value=str(user_id)
            )
        return user

    def _get_binding(self, hostel_service_id: EntityId) -> HostelService:
        binding = self._uow.hostel_services.get_by_id(hostel_service_id)
        if binding is None:
            raise EntityNotFound(
                f"Услуга приюта {hostel_service_id} не найдена",
                field="hostel_service_id",
                value=str(hostel_service_id),
            )
        return binding

    def _get_service(self, service_id: EntityId) -> Service:
        service = self._uow.services.get_by_id(service_id)
        if service is None:
            raise EntityNotFound(
                f"Услуга {service_id} не найдена",
                field="service_id",
                value=str(service_id),
            )
        return service

    def _get_schedule(self, schedule_id: EntityId) -> ServiceSchedule:
        schedule = self._uow.schedules.get_by_id(schedule_id)
        if schedule is None:
            raise EntityNotFound(
                f"Расписание {schedule_id} не найдено",
                field="schedule_id",
                value=str(schedule_id),
            )
        return schedule

    def _get_reservation(self, reservation_id: EntityId) -> ServiceReservation:
        reservation = self._uow.reservations.get_by_id(reservation_id)
        if reservation is None:
            raise EntityNotFound(
                f"Бронирование услуги {reservation_id} не найдено",
                field="reservation_id",
                value=str(reservation_id),
            )
        return reservation
