"""
Тесты границы ядра: все ответы приходят как Result.
"""

import threading
from datetime import datetime, time, timezone
from uuid import uuid4

from shelter_network.lodging.application import CapacityDTO
from shelter_network.lodging.domain import LodgingStatus
from shelter_network.shared_kernel import ErrorKind


class TestLodgingScenarios:
    def test_concurrent_individual_reservations(self, controller, stay_date):
        """Два мужских места: двое из трех параллельных гостей получают бронь."""
        hostel = controller.register_hostel("Малый приют", 2, 0).value
        users = [controller.register_user("male").value for _ in range(3)]
        barrier = threading.Barrier(3)
        results = []
        results_lock = threading.Lock()

        def worker(user):
            barrier.wait()
            result = controller.create_lodging_reservation(
                hostel.id, user.id, "individual", 1, 0, stay_date
            )
            with results_lock:
                results.append(result)

        threads = [threading.Thread(target=worker, args=(u,)) for u in users]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(r.ok for r in results) == 2
        failures = [r.error for r in results if not r.ok]
        assert [e.kind for e in failures] == [ErrorKind.CAPACITY_EXCEEDED]
        assert controller.query_available_capacity(hostel.id, stay_date).value.men_available == 0

    def test_gender_mismatch(self, controller, hostel, female_user, stay_date):
        result = controller.create_lodging_reservation(
            hostel.id, female_user.id, "individual", 1, 0, stay_date
        )

        assert not result.ok
        assert result.error.kind == ErrorKind.INVALID_PARTY_SIZE
        assert result.error.field == "gender"
        assert controller.list_lodging_reservations().value == []

    def test_no_backward_transition(self, controller, hostel, male_user, stay_date):
        reservation_id = controller.create_lodging_reservation(
            hostel.id, male_user.id, "individual", 1, 0, stay_date
        ).value
        assert controller.change_lodging_status(reservation_id, "confirmed").ok
        assert controller.change_lodging_status(reservation_id, "checked_in").ok

        result = controller.change_lodging_status(reservation_id, "confirmed")

        assert result.error.kind == ErrorKind.INVALID_TRANSITION
        reservation = controller.get_lodging_reservation(reservation_id).value
        assert reservation.status == LodgingStatus.CHECKED_IN

    def test_cancel_returns_exact_capacity(self, controller, hostel, male_user, stay_date):
        before = controller.query_available_capacity(hostel.id, stay_date).value
        reservation_id = controller.create_lodging_reservation(
            hostel.id, male_user.id, "group", 3, 0, stay_date
        ).value
        during = controller.query_available_capacity(hostel.id, stay_date).value

        assert controller.change_lodging_status(reservation_id, "cancelled").ok
        after = controller.query_available_capacity(hostel.id, stay_date).value

        assert isinstance(after, CapacityDTO)
        assert during.men_available == before.men_available - 3
        assert after.men_available == before.men_available
        assert after.women_available == before.women_available

    def test_delete_flow(self, controller, hostel, male_user, stay_date):
        reservation_id = controller.create_lodging_reservation(
            hostel.id, male_user.id, "individual", 1, 0, stay_date
        ).value

        refused = controller.delete_lodging_reservation(reservation_id)
        assert refused.error.kind == ErrorKind.ILLEGAL_DELETE

        controller.change_lodging_status(reservation_id, "rejected")
        assert controller.delete_lodging_reservation(reservation_id).ok
        missing = controller.get_lodging_reservation(reservation_id)
        assert missing.error.kind == ErrorKind.NOT_FOUND


class TestServiceScenarios:
    def test_schedule_window(self, controller, shower, male_user, stay_date):
        late = controller.create_service_reservation(
            male_user.id,
            shower.id,
            "individual",
            1,
            0,
            datetime.combine(stay_date, time(16, 30)),
        )
        on_time = controller.create_service_reservation(
            male_user.id,
            shower.id,
            "individual",
            1,
            0,
            datetime.combine(stay_date, time(16, 0)),
        )

        assert late.error.kind == ErrorKind.INVALID_SCHEDULE
        assert on_time.ok
        assert controller.list_service_reservations(shower.id).value[0].id == on_time.value

    def test_expired_query_is_read_only(self, controller, shower, male_user, stay_date):
        reservation_id = controller.create_service_reservation(
            male_user.id,
            shower.id,
            "individual",
            1,
            0,
            datetime.combine(stay_date, time(9, 0)),
        ).value

        expired = controller.query_expired_service_reservations(
            datetime.combine(stay_date, time(12, 0))
        )

        assert expired.value == [reservation_id]
        assert controller.get_service_reservation(reservation_id).value.status == "pending"

    def test_expired_query_mixes_naive_and_aware_times(
        self, controller, shower, male_user, stay_date
    ):
        """Время без часового пояса сравнивается как UTC."""
        aware = controller.create_service_reservation(
            male_user.id,
            shower.id,
            "individual",
            1,
            0,
            datetime.combine(stay_date, time(9, 0), tzinfo=timezone.utc),
        ).value
        naive = controller.create_service_reservation(
            male_user.id,
            shower.id,
            "individual",
            1,
            0,
            datetime.combine(stay_date, time(10, 0)),
        ).value

        late = controller.query_expired_service_reservations(
            datetime.combine(stay_date, time(23, 0), tzinfo=timezone.utc)
        )
        between = controller.query_expired_service_reservations(
            datetime.combine(stay_date, time(10, 30))
        )

        assert late.value == [aware, naive]
        assert between.value == [aware]

    def test_bulk_change_with_unknown_status(self, controller, shower, male_user, stay_date):
        reservation_id = controller.create_service_reservation(
            male_user.id,
            shower.id,
            "individual",
            1,
            0,
            datetime.combine(stay_date, time(9, 0)),
        ).value

        results = controller.change_service_status_bulk([reservation_id, "x"], "done")

        assert [r.error.kind for r in results] == [ErrorKind.INVALID_TRANSITION] * 2

    def test_bulk_change_with_malformed_id(self, controller, shower, male_user, stay_date):
        reservation_id = controller.create_service_reservation(
            male_user.id,
            shower.id,
            "individual",
            1,
            0,
            datetime.combine(stay_date, time(9, 0)),
        ).value

        results = controller.change_service_status_bulk(
            [str(reservation_id), "not-a-uuid"], "confirmed"
        )

        assert results[0].ok
        assert results[1].error.kind == ErrorKind.NOT_FOUND
        assert controller.allowed_service_transitions(reservation_id).value == [
            "cancelled",
            "in_progress",
        ]


class TestInputParsing:
    def test_unknown_reservation_type(self, controller, hostel, male_user, stay_date):
        result = controller.create_lodging_reservation(
            hostel.id, male_user.id, "family", 1, 0, stay_date
        )
        assert result.error.kind == ErrorKind.INVALID_PARTY_SIZE
        assert result.error.field == "type"

    def test_unknown_status(self, controller, hostel, male_user, stay_date):
        reservation_id = controller.create_lodging_reservation(
            hostel.id, male_user.id, "individual", 1, 0, stay_date
        ).value

        result = controller.change_lodging_status(reservation_id, "archived")
        assert result.error.kind == ErrorKind.INVALID_TRANSITION

    def test_string_ids_are_accepted(self, controller, hostel, male_user, stay_date):
        result = controller.create_lodging_reservation(
            str(hostel.id), str(male_user.id), "individual", 1, 0, stay_date
        )
        assert result.ok

    def test_unknown_hostel(self, controller, stay_date):
        result = controller.query_available_capacity(uuid4(), stay_date)
        assert result.error.kind == ErrorKind.NOT_FOUND
        assert result.error.retryable is False

    def test_unknown_gender(self, controller):
        assert controller.register_user("other").error.kind == ErrorKind.INVALID_PARTY_SIZE


class TestAdministration:
    def test_capacity_update_and_statistics(self, controller, hostel, male_user, stay_date):
        controller.create_lodging_reservation(
            hostel.id, male_user.id, "group", 4, 0, stay_date
        )

        refused = controller.update_hostel_capacity(hostel.id, 3, 3)
        accepted = controller.update_hostel_capacity(hostel.id, 6, 3)
        stats = controller.hostel_statistics(hostel.id, stay_date).value

        assert refused.error.kind == ErrorKind.CAPACITY_EXCEEDED
        assert accepted.value.men_capacity == 6
        assert stats.men_available == 2
        assert controller.network_statistics(stay_date).value.total_hostels == 1

    def test_delete_hostel(self, controller, hostel, male_user, stay_date):
        reservation_id = controller.create_lodging_reservation(
            hostel.id, male_user.id, "individual", 1, 0, stay_date
        ).value

        assert controller.delete_hostel(hostel.id).error.kind == ErrorKind.ILLEGAL_DELETE

        controller.change_lodging_status(reservation_id, "cancelled")
        assert controller.delete_hostel(hostel.id).ok
        assert not controller.query_available_capacity(hostel.id, stay_date).ok

    def test_allowed_lodging_transitions(self, controller, hostel, male_user, stay_date):
        reservation_id = controller.create_lodging_reservation(
            hostel.id, male_user.id, "individual", 1, 0, stay_date
        ).value

        allowed = controller.allowed_lodging_transitions(reservation_id).value

        assert allowed == [
            LodgingStatus.CANCELLED,
            LodgingStatus.CONFIRMED,
            LodgingStatus.REJECTED,
        ]

    def test_service_slots(self, controller, shower, stay_date):
        slots = controller.available_service_slots(shower.id, stay_date).value
        assert len(slots) == 9

    def test_bad_schedule(self, controller):
        result = controller.register_schedule(time(18, 0), time(9, 0))
        assert result.error.kind == ErrorKind.INVALID_SCHEDULE

    def test_bad_admin_input_becomes_result(self, controller, hostel):
        capacity = controller.update_hostel_capacity(hostel.id, -1, 0)
        new_hostel = controller.register_hostel("Приют", 2, -1)
        service = controller.register_service("Душ", 0)

        assert capacity.error.kind == ErrorKind.INVALID_PARTY_SIZE
        assert capacity.error.field == "men_capacity"
        assert new_hostel.error.field == "women_capacity"
        assert service.error.kind == ErrorKind.INVALID_SCHEDULE
        assert service.error.field == "max_time_minutes"

    def test_inactive_hostel_takes_no_reservations(
        self, controller, hostel, male_user, stay_date, app
    ):
        app.lodging_uow.hostels.get_by_id(hostel.id).is_active = False

        result = controller.create_lodging_reservation(
            hostel.id, male_user.id, "individual", 1, 0, stay_date
        )

        assert result.error.kind == ErrorKind.CAPACITY_EXCEEDED
        assert result.error.field == "hostel_id"
