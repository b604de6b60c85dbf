"""
Модуль контекста проживания (Lodging Context).

Отвечает за бронирование мест в приютах, включая:
- Учет вместимости по датам и полу
- Создание, смену статуса и удаление бронирований проживания
- Администрирование приютов и статистику загрузки
"""

from . import application, capacity, domain, infrastructure, interfaces

__all__ = [
    "capacity",
    "domain",
    "application",
    "infrastructure",
    "interfaces",
]
