"""
Тесты сервисов приложения контекста проживания.
"""

import threading
import time
from datetime import date, timedelta
from uuid import uuid4

import pytest

from shelter_network.lodging.application import (
    ChangeLodgingStatusRequest,
    CreateLodgingReservationRequest,
)
from shelter_network.lodging.domain import (
    LodgingReservationCreated,
    LodgingReservationStatusChanged,
    LodgingStatus,
)
from shelter_network.shared_kernel import (
    Busy,
    CapacityExceeded,
    EntityNotFound,
    Gender,
    IllegalDelete,
    InvalidPartySize,
    ReservationType,
)

D = date(2026, 11, 2)


@pytest.fixture
def lodging(app):
    return app.lodging_service


@pytest.fixture
def admin(app):
    return app.hostel_service


@pytest.fixture
def hostel(admin):
    return admin.register_hostel("Приют на Лесной", 5, 3)


@pytest.fixture
def man(admin):
    return admin.register_user(Gender.MALE)


def reserve(lodging, hostel, user, men=1, women=0, type=ReservationType.INDIVIDUAL, on=D):
    return lodging.create_reservation(
        CreateLodgingReservationRequest(
            hostel_id=hostel.id,
            user_id=user.id,
            type=type,
            men_quantity=men,
            women_quantity=women,
            arrival_date=on,
        )
    )


def change(lodging, reservation, status):
    return lodging.change_status(
        ChangeLodgingStatusRequest(reservation_id=reservation.id, target_status=status)
    )


class TestLodgingApplicationService:
    def test_create_publishes_event(self, app, lodging, hostel, man):
        received = []
        app.event_bus.subscribe(LodgingReservationCreated, received.append)

        dto = reserve(lodging, hostel, man)

        assert dto.status == LodgingStatus.PENDING
        assert [e.reservation_id for e in received] == [dto.id]

    def test_status_change_publishes_event(self, app, lodging, hostel, man):
        received = []
        app.event_bus.subscribe(LodgingReservationStatusChanged, received.append)
        dto = reserve(lodging, hostel, man)

        change(lodging, dto, LodgingStatus.CONFIRMED)

        assert received[0].previous_status == LodgingStatus.PENDING
        assert received[0].new_status == LodgingStatus.CONFIRMED
        assert lodging.get_reservation(dto.id).status == LodgingStatus.CONFIRMED

    def test_unknown_user(self, lodging, hostel):
        with pytest.raises(EntityNotFound, match="Пользователь"):
            lodging.create_reservation(
                CreateLodgingReservationRequest(
                    hostel_id=hostel.id,
                    user_id=uuid4(),
                    type=ReservationType.INDIVIDUAL,
                    men_quantity=1,
                    women_quantity=0,
                    arrival_date=D,
                )
            )

    def test_available_capacity(self, lodging, hostel, man):
        reserve(lodging, hostel, man, men=2, women=1, type=ReservationType.GROUP)

        capacity = lodging.available_capacity(hostel.id, D)

        assert capacity.men_available == 3
        assert capacity.women_available == 2
        assert capacity.total_available == 5

    def test_list_and_allowed_transitions(self, lodging, hostel, man):
        first = reserve(lodging, hostel, man)
        second = reserve(lodging, hostel, man, on=D + timedelta(days=1))
        change(lodging, second, LodgingStatus.CONFIRMED)

        pending = lodging.list_reservations(status=LodgingStatus.PENDING)

        assert [r.id for r in pending] == [first.id]
        assert len(lodging.list_reservations(hostel_id=hostel.id)) == 2
        assert lodging.allowed_transitions(second.id) == [
            LodgingStatus.CANCELLED,
            LodgingStatus.CHECKED_IN,
        ]

    def test_delete_requires_terminal_status(self, lodging, hostel, man):
        dto = reserve(lodging, hostel, man)

        with pytest.raises(IllegalDelete):
            lodging.delete_reservation(dto.id)

        change(lodging, dto, LodgingStatus.CANCELLED)
        lodging.delete_reservation(dto.id)

        with pytest.raises(EntityNotFound):
            lodging.get_reservation(dto.id)


class TestHostelAdministration:
    def test_capacity_edit_guard(self, admin, lodging, hostel, man):
        reserve(lodging, hostel, man, men=4, type=ReservationType.GROUP)

        with pytest.raises(CapacityExceeded):
            admin.update_capacity(hostel.id, 3, 3)
        assert admin.get_hostel(hostel.id).men_capacity == 5

        updated = admin.update_capacity(hostel.id, 4, 6)
        assert updated.total_capacity == 10
        assert lodging.available_capacity(hostel.id, D).women_available == 6

    def test_negative_capacity_is_rejected(self, admin, hostel):
        with pytest.raises(InvalidPartySize) as exc_info:
            admin.register_hostel("Приют", -1, 2)
        assert exc_info.value.field == "men_capacity"

        with pytest.raises(InvalidPartySize):
            admin.update_capacity(hostel.id, 5, -3)
        assert admin.get_hostel(hostel.id).women_capacity == 3

    def test_reservation_created_during_delete_does_not_survive(
        self, admin, lodging, hostel, man, monkeypatch
    ):
        """Бронь, запрошенная во время удаления приюта, не остается сиротой."""
        port = admin._service_reservations
        check = port.has_active_reservations_for_hostel
        errors = []

        def create_in_background():
            try:
                reserve(lodging, hostel, man)
            except (EntityNotFound, Busy) as e:
                errors.append(e)

        creator = threading.Thread(target=create_in_background)

        def check_while_creating(hostel_id):
            creator.start()
            time.sleep(0.05)
            return check(hostel_id)

        monkeypatch.setattr(
            port, "has_active_reservations_for_hostel", check_while_creating
        )

        admin.delete_hostel(hostel.id)
        creator.join()

        assert len(errors) == 1
        assert lodging.list_reservations() == []

    def test_delete_hostel_with_active_reservation(self, admin, lodging, hostel, man):
        reserve(lodging, hostel, man)

        with pytest.raises(IllegalDelete):
            admin.delete_hostel(hostel.id)
        assert admin.get_hostel(hostel.id) is not None

    def test_delete_hostel_cascades_history(self, admin, lodging, hostel, man):
        dto = reserve(lodging, hostel, man)
        change(lodging, dto, LodgingStatus.REJECTED)

        admin.delete_hostel(hostel.id)

        with pytest.raises(EntityNotFound):
            admin.get_hostel(hostel.id)
        assert lodging.list_reservations() == []

    def test_hostel_statistics(self, admin, lodging, hostel, man):
        reserve(lodging, hostel, man, men=2, women=2, type=ReservationType.GROUP)
        cancelled = reserve(lodging, hostel, man)
        change(lodging, cancelled, LodgingStatus.CANCELLED)

        stats = admin.hostel_statistics(hostel.id, D)

        assert stats.men_committed == 2
        assert stats.women_committed == 2
        assert stats.men_available == 3
        assert stats.women_available == 1
        assert stats.occupancy_rate == pytest.approx(0.5)
        assert stats.reservations_by_status == {"pending": 1, "cancelled": 1}

    def test_network_statistics(self, admin, lodging, hostel, man):
        admin.register_hostel("Закрытый приют", 2, 2, is_active=False)
        reserve(lodging, hostel, man)
        reserve(lodging, hostel, man, on=D + timedelta(days=40))

        stats = admin.network_statistics(D)

        assert stats.total_hostels == 2
        assert stats.active_hostels == 1
        assert stats.inactive_hostels == 1
        assert stats.total_capacity == 12
        assert stats.total_reservations == 2
        assert stats.arrivals_today == 1
        assert stats.arrivals_this_week == 1
        assert stats.arrivals_this_month == 1
