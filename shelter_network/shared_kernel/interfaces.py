"""
Общие интерфейсы (порты), используемые всеми контекстами.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Protocol, Type, TypeVar

from .domain import DomainEvent, EntityId, User

T_Event = TypeVar("T_Event", bound=DomainEvent)


class ILogger(Protocol):
    """Интерфейс для логгера."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...


class IEventBus(Protocol):
    """Интерфейс для шины событий."""

    def publish(self, event: DomainEvent) -> None: ...
    def publish_all(self, events: List[DomainEvent]) -> None: ...
    def subscribe(
        self, event_type: Type[T_Event], handler: Callable[[T_Event], None]
    ) -> None: ...


class IUserRepository(Protocol):
    """Интерфейс репозитория пользователей."""

    def add(self, user: User) -> None: ...
    def get_by_id(self, user_id: EntityId) -> Optional[User]: ...
