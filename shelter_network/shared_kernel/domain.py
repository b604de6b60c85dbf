"""
Основные доменные типы и утилиты общего ядра.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Generic, Optional, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

# Общие типы идентификаторов
EntityId = UUID

T = TypeVar("T")


def generate_id() -> UUID:
    """Генерирует новый UUID."""
    return uuid4()


# Общие перечисления
class Gender(str, Enum):
    """Пол человека, занимающего место."""

    MALE = "male"
    FEMALE = "female"


class ReservationType(str, Enum):
    """Тип бронирования: индивидуальное или групповое."""

    INDIVIDUAL = "individual"
    GROUP = "group"


class ErrorKind(str, Enum):
    """Виды доменных ошибок, возвращаемых вызывающей стороне."""

    INVALID_PARTY_SIZE = "invalid_party_size"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    INVALID_SCHEDULE = "invalid_schedule"
    INVALID_TRANSITION = "invalid_transition"
    ILLEGAL_DELETE = "illegal_delete"
    BUSY = "busy"
    NOT_FOUND = "not_found"


class User(BaseModel):
    """Пользователь, на которого оформляется бронирование.

    Учетными записями управляет внешняя система; ядру нужен только пол.
    """

    id: EntityId = Field(default_factory=generate_id)
    gender: Gender
    is_active: bool = True


class DomainEvent(BaseModel):
    """Базовый класс для всех доменных событий."""

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    occurred_on: datetime = Field(default_factory=lambda: now())

    @property
    def event_type(self) -> str:
        return type(self).__name__


# Общие исключения
class DomainException(Exception):
    """Базовое исключение для доменных ошибок."""

    kind: ErrorKind
    retryable: bool = False

    def __init__(
        self, message: str, field: Optional[str] = None, value: Any = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def to_error(self) -> "DomainError":
        """Преобразует исключение в структурированную ошибку."""
        return DomainError(
            kind=self.kind,
            message=self.message,
            field=self.field,
            value=self.value,
            retryable=self.retryable,
        )


class InvalidPartySize(DomainException):
    """Нарушено правило состава группы или соответствия полу."""

    kind = ErrorKind.INVALID_PARTY_SIZE

    def __init__(
        self, rule: str, message: str, field: Optional[str] = None, value: Any = None
    ) -> None:
        super().__init__(message, field=field, value=value)
        self.rule = rule


class CapacityExceeded(DomainException):
    """Недостаточно свободных мест указанного пола на дату."""

    kind = ErrorKind.CAPACITY_EXCEEDED


class InvalidSchedule(DomainException):
    """Запрошенное время услуги не попадает в окно расписания."""

    kind = ErrorKind.INVALID_SCHEDULE


class InvalidTransition(DomainException):
    """Переход между статусами не разрешен."""

    kind = ErrorKind.INVALID_TRANSITION


class IllegalDelete(DomainException):
    """Попытка удалить объект, у которого есть активные бронирования."""

    kind = ErrorKind.ILLEGAL_DELETE


class Busy(DomainException):
    """Не удалось захватить блокировку журнала вместимости за отведенное время."""

    kind = ErrorKind.BUSY
    retryable = True


class EntityNotFound(DomainException):
    """Сущность с указанным идентификатором не найдена."""

    kind = ErrorKind.NOT_FOUND


# Типизированные результаты для внешних вызывающих сторон
class DomainError(BaseModel):
    """Структурированное описание доменной ошибки."""

    kind: ErrorKind
    message: str
    field: Optional[str] = None
    value: Any = None
    retryable: bool = False


class Result(BaseModel, Generic[T]):
    """Результат операции: значение либо ошибка."""

    ok: bool
    value: Optional[T] = None
    error: Optional[DomainError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: DomainException) -> "Result[T]":
        return cls(ok=False, error=exc.to_error())


# Общие утилиты
def now() -> datetime:
    """Возвращает текущую дату и время в UTC."""
    return datetime.now(timezone.utc)


def today() -> date:
    """Возвращает текущую дату."""
    return date.today()


def as_utc(value: datetime) -> datetime:
    """Приводит дату и время к виду, сравнимому с любым другим.

    Значение без часового пояса считается заданным в UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
