"""
Общая инфраструктура: логирование, шина доменных событий, блокировки
по ключу и репозиторий пользователей в памяти.
"""

import json
import logging
import sys
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Type

from . import interfaces as ports
from .domain import Busy, DomainEvent, EntityId, User

_LOGGING_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Настраивает логирование процесса один раз."""
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    from ..config import get_settings

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    _LOGGING_CONFIGURED = True


class StandardLogger(ports.ILogger):
    """Реализация ILogger поверх стандартного модуля logging.

    Именованные аргументы сообщения дописываются к записи как JSON-контекст.
    """

    def __init__(self, name: str = "shelter_network") -> None:
        self._logger = logging.getLogger(name)

    def _log(self, level: int, message: str, context: Dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if context:
            message = f"{message} | {json.dumps(context, default=str, ensure_ascii=False)}"
        self._logger.log(level, message)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)


def get_logger(name: str) -> StandardLogger:
    """Возвращает логгер для указанного модуля."""
    configure_logging()
    return StandardLogger(name)


class InMemoryEventBus(ports.IEventBus):
    """Шина доменных событий в памяти.

    Обработчик, подписанный на базовый класс события (например, на
    DomainEvent), получает и все его подклассы. Подписка и публикация
    могут идти из разных потоков.
    """

    def __init__(self, logger: Optional[ports.ILogger] = None):
        self._subscribers: Dict[Type[DomainEvent], List[Callable]] = {}
        self._lock = threading.Lock()
        self._logger = logger or get_logger(__name__)

    def _handlers_for(self, event: DomainEvent) -> List[Callable]:
        with self._lock:
            return [
                handler
                for event_type in type(event).__mro__
                for handler in self._subscribers.get(event_type, [])
            ]

    def publish(self, event: DomainEvent) -> None:
        """Передает событие всем подписчикам его типа и базовых типов."""
        handlers = self._handlers_for(event)
        if not handlers:
            self._logger.debug(f"No subscribers for event type {event.event_type}")
            return

        self._logger.info(
            f"Publishing event: {event.event_type}",
            event_id=str(event.event_id),
            handlers=len(handlers),
        )
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                # Сбой подписчика не откатывает уже зафиксированное изменение
                self._logger.error(
                    f"Error in event handler for {event.event_type}",
                    error=str(e),
                    event=event.model_dump(mode="json"),
                )

    def publish_all(self, events: List[DomainEvent]) -> None:
        """Публикует события агрегата в порядке их возникновения."""
        for event in events:
            self.publish(event)

    def subscribe(self, event_type: Type[DomainEvent], handler: Callable) -> None:
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)
        self._logger.debug(f"Subscribed handler to {event_type.__name__} events")


class KeyedLocks:
    """Набор блокировок по ключу (например, по идентификатору бронирования).

    Захват ограничен по времени: по истечении таймаута выбрасывается Busy.
    Блокировка живет, пока ее кто-то держит или ждет, затем удаляется.
    """

    def __init__(self, timeout_seconds: float) -> None:
        self._timeout = timeout_seconds
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._holders: Dict[Hashable, int] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._registry_lock:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            if not lock.acquire(timeout=self._timeout):
                raise Busy(
                    "Объект занят другой операцией, повторите попытку позже",
                    field="lock",
                    value=str(key),
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._registry_lock:
                self._holders[key] -= 1
                if not self._holders[key]:
                    del self._holders[key]
                    del self._locks[key]


class InMemoryUserRepository(ports.IUserRepository):
    """Реализация репозитория пользователей в памяти."""

    def __init__(self) -> None:
        self._users: Dict[EntityId, User] = {}

    def add(self, user: User) -> None:
        if user.id in self._users:
            raise ValueError(f"User with id {user.id} already exists")
        self._users[user.id] = user

    def get_by_id(self, user_id: EntityId) -> Optional[User]:
        return self._users.get(user_id)
