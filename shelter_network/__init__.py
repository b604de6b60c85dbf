"""
Ядро бронирований сети приютов.

Состоит из общего ядра и двух ограниченных контекстов:
- lodging: приюты, журнал вместимости и бронирования проживания
- services: услуги, расписания и бронирования услуг

Внешний слой работает с ядром через ReservationController,
собранный функцией bootstrap_app.
"""

from .bootstrap import Application, bootstrap_app
from .controller import ReservationController

__all__ = [
    "Application",
    "bootstrap_app",
    "ReservationController",
]
