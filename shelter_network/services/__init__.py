"""
Модуль контекста услуг (Services Context).

Отвечает за услуги приютов, включая:
- Регистрацию услуг и расписаний, привязку услуг к приютам
- Проверку попадания бронирования в окно расписания
- Жизненный цикл бронирований услуг и их просрочку
"""

from . import application, domain, infrastructure, interfaces, scheduling

__all__ = [
    "scheduling",
    "domain",
    "application",
    "infrastructure",
    "interfaces",
]
