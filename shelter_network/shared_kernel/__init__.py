"""
Общее ядро (Shared Kernel) сети приютов.

Содержит общие типы данных, исключения и правила состава бронирования,
используемые контекстами проживания и услуг.
"""

from .domain import (
    Busy,
    CapacityExceeded,
    DomainError,
    DomainEvent,
    # Исключения
    DomainException,
    # Базовые типы
    EntityId,
    EntityNotFound,
    ErrorKind,
    # Перечисления
    Gender,
    IllegalDelete,
    InvalidPartySize,
    InvalidSchedule,
    InvalidTransition,
    ReservationType,
    Result,
    User,
    generate_id,
    # Утилиты
    as_utc,
    now,
    today,
)
from .validation import ReservationValidator, validate_sizing

__all__ = [
    # Базовые типы
    "EntityId",
    "generate_id",
    "DomainEvent",
    "DomainError",
    "Result",
    "User",
    # Перечисления
    "Gender",
    "ReservationType",
    "ErrorKind",
    # Исключения
    "DomainException",
    "InvalidPartySize",
    "CapacityExceeded",
    "InvalidSchedule",
    "InvalidTransition",
    "IllegalDelete",
    "Busy",
    "EntityNotFound",
    # Правила
    "ReservationValidator",
    "validate_sizing",
    # Утилиты
    "as_utc",
    "now",
    "today",
]
