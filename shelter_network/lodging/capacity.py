"""
Журнал вместимости приютов.

Хранит по ключу (приют, дата, пол) количество занятых мест и является
единственным местом, где это количество читается и изменяется. Проверка
свободных мест и их занятие выполняются одним атомарным шагом под
блокировками ключей, поэтому два параллельных запроса не могут вместе
превысить вместимость.
"""

import threading
from contextlib import contextmanager
from datetime import date
from typing import ContextManager, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..shared_kernel import (
    Busy,
    CapacityExceeded,
    EntityId,
    EntityNotFound,
    Gender,
    InvalidPartySize,
    generate_id,
)
from ..shared_kernel import interfaces as ports
from ..shared_kernel.infrastructure import KeyedLocks, get_logger

LedgerKey = Tuple[EntityId, date, Gender]

# Порядок захвата блокировок внутри одной даты
_GENDER_ORDER = (Gender.MALE, Gender.FEMALE)


class CommitmentHandle(BaseModel):
    """Квитанция об успешно занятых местах, по которой их освобождают."""

    model_config = ConfigDict(frozen=True)

    id: EntityId = Field(default_factory=generate_id)
    hostel_id: EntityId
    stay_date: date
    men_quantity: int = Field(..., ge=0)
    women_quantity: int = Field(..., ge=0)

    def quantity(self, gender: Gender) -> int:
        return self.men_quantity if gender == Gender.MALE else self.women_quantity


class CapacityLedger:
    """Учет занятых мест по приютам, датам и полу."""

    def __init__(
        self,
        lock_timeout_seconds: float = 0.5,
        logger: Optional[ports.ILogger] = None,
    ) -> None:
        self._timeout = lock_timeout_seconds
        self._logger = logger or get_logger(__name__)
        self._capacities: Dict[EntityId, Dict[Gender, int]] = {}
        self._committed: Dict[LedgerKey, int] = {}
        self._commitments: Dict[EntityId, CommitmentHandle] = {}
        self._locks: Dict[LedgerKey, threading.Lock] = {}
        self._holders: Dict[LedgerKey, int] = {}
        self._hostel_locks = KeyedLocks(lock_timeout_seconds)
        # Охраняет словарь блокировок и таблицу вместимостей
        self._registry_lock = threading.Lock()

    # --- Блокировки ---

    def _acquire(self, lock: threading.Lock, what: str) -> None:
        if not lock.acquire(timeout=self._timeout):
            self._logger.warning("Capacity ledger lock timeout", key=what)
            raise Busy(
                "Журнал вместимости занят, повторите попытку позже",
                field="lock",
                value=what,
            )

    def _checkout(self, keys: List[LedgerKey]) -> List[threading.Lock]:
        # Вызывается под _registry_lock
        locks = []
        for key in keys:
            locks.append(self._locks.setdefault(key, threading.Lock()))
            self._holders[key] = self._holders.get(key, 0) + 1
        return locks

    def _checkin(self, keys: List[LedgerKey]) -> None:
        # Вызывается под _registry_lock
        for key in keys:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def _locked(self, keys: List[LedgerKey]) -> Iterator[None]:
        self._acquire(self._registry_lock, "registry")
        try:
            locks = self._checkout(keys)
        finally:
            self._registry_lock.release()

        acquired: List[threading.Lock] = []
        try:
            for key, lock in zip(keys, locks):
                self._acquire(lock, f"{key[0]}:{key[1].isoformat()}:{key[2].value}")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            with self._registry_lock:
                self._checkin(keys)

    @staticmethod
    def _keys(hostel_id: EntityId, stay_date: date) -> List[LedgerKey]:
        return [(hostel_id, stay_date, gender) for gender in _GENDER_ORDER]

    def hold_hostel(self, hostel_id: EntityId) -> ContextManager[None]:
        """Исключительный доступ к приюту на время создания брони или удаления.

        Создание бронирования и удаление приюта под этой блокировкой
        не пересекаются, поэтому удаленный приют не получит новых броней.
        """
        return self._hostel_locks.hold(hostel_id)

    @property
    def tracked_lock_count(self) -> int:
        """Количество блокировок ключей, которые сейчас кто-то держит или ждет."""
        with self._registry_lock:
            return len(self._locks)

    # --- Вместимость ---

    @staticmethod
    def check_capacity(men_capacity: int, women_capacity: int) -> None:
        """Вместимость задается неотрицательными числами."""
        for field, value in (
            ("men_capacity", men_capacity),
            ("women_capacity", women_capacity),
        ):
            if value < 0:
                raise InvalidPartySize(
                    "non_negative",
                    "Вместимость не может быть отрицательной",
                    field=field,
                    value=value,
                )

    def register_hostel(
        self, hostel_id: EntityId, men_capacity: int, women_capacity: int
    ) -> None:
        """Регистрирует приют с его вместимостью."""
        self.check_capacity(men_capacity, women_capacity)
        with self._registry_lock:
            self._capacities[hostel_id] = {
                Gender.MALE: men_capacity,
                Gender.FEMALE: women_capacity,
            }

    def set_capacity(
        self, hostel_id: EntityId, men_capacity: int, women_capacity: int
    ) -> None:
        """Изменяет вместимость приюта.

        Новая вместимость не может быть меньше уже занятых мест ни на одну
        дату. Пока идет проверка, удерживаются блокировки всех занятых или
        захваченных ключей приюта, а новые ключи не выдаются.
        """
        self.check_capacity(men_capacity, women_capacity)

        self._acquire(self._registry_lock, "registry")
        try:
            if hostel_id not in self._capacities:
                raise EntityNotFound(
                    f"Приют {hostel_id} не зарегистрирован в журнале вместимости",
                    field="hostel_id",
                    value=str(hostel_id),
                )
            keys = sorted(
                {key for key in self._locks if key[0] == hostel_id}
                | {key for key in self._committed if key[0] == hostel_id},
                key=lambda k: (k[1], _GENDER_ORDER.index(k[2])),
            )
            locks = self._checkout(keys)
            acquired: List[threading.Lock] = []
            try:
                for key, lock in zip(keys, locks):
                    self._acquire(lock, f"{key[1].isoformat()}:{key[2].value}")
                    acquired.append(lock)

                requested = {Gender.MALE: men_capacity, Gender.FEMALE: women_capacity}
                for (_, stay_date, gender) in keys:
                    committed = self._committed.get((hostel_id, stay_date, gender), 0)
                    if committed > requested[gender]:
                        raise CapacityExceeded(
                            f"На {stay_date.isoformat()} уже занято {committed} мест "
                            f"({gender.value}), нельзя уменьшить вместимость "
                            f"до {requested[gender]}",
                            field=f"{gender.value}_capacity",
                            value=requested[gender],
                        )
                self._capacities[hostel_id] = requested
            finally:
                for lock in reversed(acquired):
                    lock.release()
                self._checkin(keys)
        finally:
            self._registry_lock.release()

        self._logger.info(
            "Hostel capacity changed",
            hostel_id=str(hostel_id),
            men_capacity=men_capacity,
            women_capacity=women_capacity,
        )

    def capacity(self, hostel_id: EntityId, gender: Gender) -> int:
        try:
            return self._capacities[hostel_id][gender]
        except KeyError:
            raise EntityNotFound(
                f"Приют {hostel_id} не зарегистрирован в журнале вместимости",
                field="hostel_id",
                value=str(hostel_id),
            ) from None

    def committed(self, hostel_id: EntityId, stay_date: date, gender: Gender) -> int:
        return self._committed.get((hostel_id, stay_date, gender), 0)

    def available(self, hostel_id: EntityId, stay_date: date, gender: Gender) -> int:
        """Свободные места = вместимость - занятые."""
        return self.capacity(hostel_id, gender) - self.committed(
            hostel_id, stay_date, gender
        )

    def max_committed(self, hostel_id: EntityId, gender: Gender) -> int:
        """Максимум занятых мест указанного пола по всем датам."""
        return max(
            (
                count
                for (h_id, _, g), count in list(self._committed.items())
                if h_id == hostel_id and g == gender
            ),
            default=0,
        )

    def has_commitments(self, hostel_id: EntityId) -> bool:
        return any(
            handle.hostel_id == hostel_id
            for handle in list(self._commitments.values())
        )

    def forget_hostel(self, hostel_id: EntityId) -> None:
        """Удаляет приют из журнала вместе с оставшимися квитанциями."""
        with self._registry_lock:
            self._capacities.pop(hostel_id, None)
            for key in [k for k in self._committed if k[0] == hostel_id]:
                del self._committed[key]
            for handle_id in [
                h.id for h in self._commitments.values() if h.hostel_id == hostel_id
            ]:
                del self._commitments[handle_id]

    # --- Занятие и освобождение мест ---

    def try_reserve(
        self,
        hostel_id: EntityId,
        stay_date: date,
        men_quantity: int,
        women_quantity: int,
    ) -> CommitmentHandle:
        """Атомарно проверяет и занимает места.

        При нехватке мест выбрасывает CapacityExceeded, ничего не изменяя.
        """
        if men_quantity < 0 or women_quantity < 0:
            raise InvalidPartySize(
                "non_negative",
                "Количество мест не может быть отрицательным",
                field="men_quantity" if men_quantity < 0 else "women_quantity",
                value=min(men_quantity, women_quantity),
            )

        requested = {Gender.MALE: men_quantity, Gender.FEMALE: women_quantity}
        keys = self._keys(hostel_id, stay_date)

        with self._locked(keys):
            for gender in _GENDER_ORDER:
                available = self.available(hostel_id, stay_date, gender)
                if requested[gender] > available:
                    self._logger.info(
                        "Capacity exceeded",
                        hostel_id=str(hostel_id),
                        date=stay_date.isoformat(),
                        gender=gender.value,
                        requested=requested[gender],
                        available=available,
                    )
                    raise CapacityExceeded(
                        f"Недостаточно мест ({gender.value}) на "
                        f"{stay_date.isoformat()}: запрошено {requested[gender]}, "
                        f"свободно {available}",
                        field=(
                            "men_quantity" if gender == Gender.MALE else "women_quantity"
                        ),
                        value=requested[gender],
                    )

            for key in keys:
                self._committed[key] = self._committed.get(key, 0) + requested[key[2]]

            handle = CommitmentHandle(
                hostel_id=hostel_id,
                stay_date=stay_date,
                men_quantity=men_quantity,
                women_quantity=women_quantity,
            )
            self._commitments[handle.id] = handle

        self._logger.debug(
            "Capacity committed",
            commitment_id=str(handle.id),
            hostel_id=str(hostel_id),
            date=stay_date.isoformat(),
            men=men_quantity,
            women=women_quantity,
        )
        return handle

    def get_commitment(self, commitment_id: EntityId) -> Optional[CommitmentHandle]:
        """Возвращает действующую квитанцию или None, если она уже освобождена."""
        return self._commitments.get(commitment_id)

    def release(self, handle: CommitmentHandle) -> bool:
        """Освобождает места по квитанции.

        Повторное освобождение ничего не делает и возвращает False.
        """
        with self._locked(self._keys(handle.hostel_id, handle.stay_date)):
            stored = self._commitments.pop(handle.id, None)
            if stored is None:
                return False
            for gender in _GENDER_ORDER:
                key = (stored.hostel_id, stored.stay_date, gender)
                remaining = self._committed.get(key, 0) - stored.quantity(gender)
                if remaining:
                    self._committed[key] = remaining
                else:
                    self._committed.pop(key, None)

        self._logger.debug(
            "Capacity released",
            commitment_id=str(handle.id),
            hostel_id=str(handle.hostel_id),
            date=handle.stay_date.isoformat(),
        )
        return True
