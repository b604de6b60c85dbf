"""
Общие фикстуры тестов ядра бронирований.
"""

from datetime import date, time

import pytest

from shelter_network import bootstrap_app
from shelter_network.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Настройки без чтения .env, с коротким таймаутом блокировок."""
    return Settings(_env_file=None, lock_timeout_seconds=0.2)


@pytest.fixture
def app(settings):
    """Полностью собранное приложение с чистыми репозиториями."""
    return bootstrap_app(settings)


@pytest.fixture
def controller(app):
    return app.controller


@pytest.fixture
def stay_date() -> date:
    return date(2026, 11, 2)


@pytest.fixture
def male_user(controller):
    return controller.register_user("male").value


@pytest.fixture
def female_user(controller):
    return controller.register_user("female").value


@pytest.fixture
def hostel(controller):
    """Приют на 5 мужских и 3 женских места."""
    return controller.register_hostel("Приют на Лесной", 5, 3).value


@pytest.fixture
def shower(controller, hostel):
    """Душ в приюте: 60 минут, индивидуально, с 08:00 до 17:00."""
    service = controller.register_service("Душ", 60, "individual").value
    schedule = controller.register_schedule(time(8, 0), time(17, 0)).value
    return controller.bind_service(hostel.id, service.id, schedule.id).value
