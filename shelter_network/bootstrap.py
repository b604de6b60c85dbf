from typing import Optional

from pydantic import BaseModel, ConfigDict

from .config import Settings, get_settings
from .controller import ReservationController
from .lodging.application import HostelAdministrationService, LodgingApplicationService
from .lodging.capacity import CapacityLedger
from .lodging.domain import LodgingReservationMachine
from .lodging.infrastructure import LodgingUnitOfWork
from .services.application import ServiceApplicationService
from .services.domain import ServiceReservationMachine
from .services.infrastructure import HostelServiceReservationsAdapter, ServiceUnitOfWork
from .shared_kernel.infrastructure import (
    InMemoryEventBus,
    InMemoryUserRepository,
    configure_logging,
    get_logger,
)


class Application(BaseModel):
    """Собранные компоненты приложения."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Settings
    controller: ReservationController
    ledger: CapacityLedger
    event_bus: InMemoryEventBus
    lodging_uow: LodgingUnitOfWork
    service_uow: ServiceUnitOfWork
    lodging_service: LodgingApplicationService
    hostel_service: HostelAdministrationService
    service_service: ServiceApplicationService


def bootstrap_app(settings: Optional[Settings] = None) -> Application:
    """Создает и настраивает все компоненты приложения."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    logger = get_logger(settings.app_name)

    # 1. Общие для обоих контекстов пользователи и шина событий
    users = InMemoryUserRepository()
    event_bus = InMemoryEventBus(logger=logger)

    # 2. Контекст проживания
    ledger = CapacityLedger(lock_timeout_seconds=settings.lock_timeout_seconds)
    lodging_uow = LodgingUnitOfWork(users_repo=users)
    lodging_machine = LodgingReservationMachine(
        ledger,
        lodging_uow.reservations,
        release_on_checkout=settings.release_on_checkout,
        lock_timeout_seconds=settings.lock_timeout_seconds,
    )

    # 3. Контекст услуг
    service_uow = ServiceUnitOfWork(users_repo=users)
    service_machine = ServiceReservationMachine(
        service_uow.reservations,
        lock_timeout_seconds=settings.lock_timeout_seconds,
    )

    # 4. Сервисы приложения; контексты связаны только через порты
    lodging_service = LodgingApplicationService(
        lodging_uow, lodging_machine, ledger, event_bus=event_bus
    )
    hostel_service = HostelAdministrationService(
        lodging_uow,
        ledger,
        service_reservations=HostelServiceReservationsAdapter(service_uow),
    )
    service_service = ServiceApplicationService(
        service_uow,
        service_machine,
        hostel_exists=lambda hostel_id: lodging_uow.hostels.get_by_id(hostel_id)
        is not None,
        event_bus=event_bus,
    )

    controller = ReservationController(lodging_service, hostel_service, service_service)

    logger.info(
        "Application bootstrapped",
        lock_timeout_seconds=settings.lock_timeout_seconds,
        release_on_checkout=settings.release_on_checkout,
    )
    return Application(
        settings=settings,
        controller=controller,
        ledger=ledger,
        event_bus=event_bus,
        lodging_uow=lodging_uow,
        service_uow=service_uow,
        lodging_service=lodging_service,
        hostel_service=hostel_service,
        service_service=service_service,
    )
