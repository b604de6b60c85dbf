"""
Тесты машины состояний бронирования услуги.
"""

from datetime import datetime, time, timedelta

import pytest

from shelter_network.services.domain import (
    SERVICE_TRANSITIONS,
    TERMINAL_SERVICE_STATUSES,
    HostelService,
    Service,
    ServiceReservationCreated,
    ServiceReservationMachine,
    ServiceStatus,
)
from shelter_network.services.infrastructure import (
    InMemoryServiceReservationRepository,
)
from shelter_network.services.scheduling import ServiceSchedule
from shelter_network.shared_kernel import (
    Gender,
    IllegalDelete,
    InvalidPartySize,
    InvalidSchedule,
    InvalidTransition,
    ReservationType,
    User,
    generate_id,
)

START = datetime(2026, 11, 2, 16, 0)


@pytest.fixture
def repo():
    return InMemoryServiceReservationRepository()


@pytest.fixture
def machine(repo):
    return ServiceReservationMachine(repo, lock_timeout_seconds=0.1)


@pytest.fixture
def user():
    return User(gender=Gender.FEMALE)


@pytest.fixture
def shower():
    return Service(name="Душ", max_time_minutes=60)


@pytest.fixture
def schedule():
    return ServiceSchedule(start_time=time(8, 0), end_time=time(17, 0))


@pytest.fixture
def binding(shower, schedule):
    return HostelService(
        hostel_id=generate_id(), service_id=shower.id, schedule_id=schedule.id
    )


@pytest.fixture
def book(machine, user, binding, shower, schedule):
    """Создает бронирование душа; параметры можно переопределить."""

    def _book(when=START, men=0, women=1, type=ReservationType.INDIVIDUAL, **overrides):
        arguments = dict(
            user=user,
            hostel_service=binding,
            service=shower,
            schedule=schedule,
            type=type,
            men_quantity=men,
            women_quantity=women,
            datetime_reserved=when,
        )
        arguments.update(overrides)
        return machine.create(**arguments)

    return _book


class TestTransitionTable:
    def test_every_status_has_a_row(self):
        assert set(SERVICE_TRANSITIONS) == set(ServiceStatus)
        assert TERMINAL_SERVICE_STATUSES == {
            ServiceStatus.COMPLETED,
            ServiceStatus.CANCELLED,
            ServiceStatus.REJECTED,
        }

    def test_in_progress_can_still_be_cancelled(self, machine, book):
        reservation = book()
        machine.transition(reservation, ServiceStatus.CONFIRMED)
        machine.transition(reservation, ServiceStatus.IN_PROGRESS)
        machine.transition(reservation, ServiceStatus.CANCELLED)

        assert reservation.status == ServiceStatus.CANCELLED

    def test_completed_is_terminal(self, machine, book):
        reservation = book()
        for status in ("confirmed", "in_progress", "completed"):
            machine.transition(reservation, status)

        with pytest.raises(InvalidTransition):
            machine.transition(reservation, ServiceStatus.CANCELLED)

    def test_pending_cannot_start(self, machine, book):
        with pytest.raises(InvalidTransition):
            machine.transition(book(), ServiceStatus.IN_PROGRESS)


class TestCreate:
    def test_reservation_ending_at_close(self, book, repo):
        reservation = book()

        assert reservation.status == ServiceStatus.PENDING
        assert reservation.duration_minutes == 60
        assert reservation.ends_at == START + timedelta(minutes=60)
        assert repo.get_by_id(reservation.id) is reservation
        assert isinstance(reservation.pull_domain_events()[0], ServiceReservationCreated)

    def test_reservation_past_close(self, book, repo):
        with pytest.raises(InvalidSchedule) as exc_info:
            book(when=START + timedelta(minutes=30))

        assert exc_info.value.field == "datetime_reserved"
        assert repo.find() == []

    def test_shorter_duration_fits(self, book):
        reservation = book(when=START + timedelta(minutes=30), duration_minutes=30)
        assert reservation.ends_at == datetime(2026, 11, 2, 17, 0)

    def test_duration_above_service_maximum(self, book):
        with pytest.raises(InvalidSchedule) as exc_info:
            book(when=datetime(2026, 11, 2, 9, 0), duration_minutes=90)
        assert exc_info.value.field == "duration_minutes"

    def test_approval_does_not_change_initial_status(self, book):
        reservation = book(
            service=Service(name="Стирка", max_time_minutes=60, needs_approval=True)
        )
        assert reservation.status == ServiceStatus.PENDING

    def test_inactive_binding(self, book, binding):
        binding.is_active = False
        with pytest.raises(InvalidSchedule, match="отключена"):
            book()

    def test_inactive_service(self, book):
        with pytest.raises(InvalidSchedule):
            book(service=Service(name="Душ", max_time_minutes=60, is_active=False))

    def test_unavailable_schedule(self, book):
        closed = ServiceSchedule(
            start_time=time(8, 0), end_time=time(17, 0), is_available=False
        )
        with pytest.raises(InvalidSchedule):
            book(schedule=closed)

    def test_sizing_is_checked_first(self, book):
        with pytest.raises(InvalidPartySize) as exc_info:
            book(men=1, women=0)
        assert exc_info.value.rule == "gender_mismatch"

    def test_type_must_match_service(self, book):
        with pytest.raises(InvalidPartySize) as exc_info:
            book(type=ReservationType.GROUP, men=1, women=1)
        assert exc_info.value.rule == "reservation_type"


class TestExpiration:
    def test_expired_once_interval_has_ended(self, book):
        reservation = book()

        assert not reservation.is_expired(START + timedelta(minutes=59))
        assert reservation.is_expired(START + timedelta(minutes=60))

    def test_confirmed_can_expire(self, machine, book):
        reservation = book()
        machine.transition(reservation, ServiceStatus.CONFIRMED)

        assert reservation.is_expired(START + timedelta(days=1))
        assert reservation.status == ServiceStatus.CONFIRMED

    def test_started_reservation_never_expires(self, machine, book):
        reservation = book()
        machine.transition(reservation, ServiceStatus.CONFIRMED)
        machine.transition(reservation, ServiceStatus.IN_PROGRESS)

        assert not reservation.is_expired(START + timedelta(days=1))


class TestDelete:
    def test_pending_cannot_be_deleted(self, machine, book):
        with pytest.raises(IllegalDelete):
            machine.delete(book())

    def test_rejected_is_deleted(self, machine, book, repo):
        reservation = book()
        machine.transition(reservation, ServiceStatus.REJECTED)

        machine.delete(reservation)

        assert repo.get_by_id(reservation.id) is None
