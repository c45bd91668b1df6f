import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar
from uuid import UUID

from .datetime_utils import utc_now
from .errors import ServiceUnavailableError
from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TransientStoreError(Exception):
    """A store failure that is safe to retry (lock timeout, serialization conflict)."""


class UnitOfWork:
    """
    Write buffer for one transaction.

    Account rows handed out by ``account()`` are private copies; they, plus every
    staged append and keyed put, reach the store only on commit.
    """

    def __init__(self, storage: "InMemoryStorage"):
        self._storage = storage
        self._accounts: dict[UUID, dict] = {}
        self._appends: list[tuple[str, dict]] = []
        self._puts: list[tuple[str, Any, Any]] = []

    def account(self, account_id: UUID) -> Optional[dict]:
        if account_id in self._accounts:
            return self._accounts[account_id]
        stored = self._storage.accounts.get(account_id)
        if stored is None:
            return None
        row = dict(stored)
        self._accounts[account_id] = row
        return row

    def append(self, collection: str, data: dict) -> dict:
        self._appends.append((collection, data))
        return data

    def put(self, mapping: str, key: Any, data: Any) -> Any:
        self._puts.append((mapping, key, data))
        return data

    def get(self, mapping: str, key: Any) -> Any:
        for name, staged_key, data in reversed(self._puts):
            if name == mapping and staged_key == key:
                return data
        stored = getattr(self._storage, mapping).get(key)
        return dict(stored) if isinstance(stored, dict) else stored

    def _commit(self) -> None:
        storage = self._storage
        with storage.write_lock:
            for account_id, row in self._accounts.items():
                storage.accounts[account_id] = row
            for collection, data in self._appends:
                getattr(storage, collection).append(data)
            for mapping, key, data in self._puts:
                getattr(storage, mapping)[key] = data


class InMemoryStorage:
    """
    Transactional in-memory store.

    Rows are plain dicts, models are built from them on the way out. Writes go
    through ``transaction()``, which locks the touched accounts in ascending id
    order and applies the buffered writes all at once, or not at all.
    """

    def __init__(self, clock: Callable = utc_now):
        self.clock = clock
        self.accounts: dict[UUID, dict] = {}
        self.transactions: list[dict] = []
        self.block_records: list[dict] = []
        self.daily_rewards: dict[UUID, dict] = {}
        self.referral_configs: dict[UUID, dict] = {}
        self.referral_events: list[dict] = []
        self.invite_codes: dict[str, dict] = {}
        self.idempotency_index: dict[tuple[UUID, str], UUID] = {}
        self.payment_index: dict[str, UUID] = {}
        self._locks: dict[Any, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self.write_lock = threading.RLock()

    def _lock_for(self, key: Any) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @staticmethod
    def lock_order(account_ids) -> list[UUID]:
        return sorted(set(account_ids))

    @contextmanager
    def key_lock(self, namespace: str, key: str) -> Iterator[None]:
        """
        Serialize work on a non-account key (e.g. a payment reference).

        Take it before ``transaction()``, never inside one.
        """
        lock = self._lock_for((namespace, key))
        with lock:
            yield

    def _begin(self, account_ids: list[UUID]) -> None:
        """
        Hook run once the row locks are held.

        A datastore adapter overrides it to open its own transaction and raises
        TransientStoreError on lock timeouts or serialization conflicts.
        """

    @contextmanager
    def transaction(self, *account_ids: UUID) -> Iterator[UnitOfWork]:
        locks = [self._lock_for(a) for a in self.lock_order(account_ids)]
        for lock in locks:
            lock.acquire()
        try:
            self._begin(self.lock_order(account_ids))
            work = UnitOfWork(self)
            yield work
            work._commit()
        finally:
            for lock in reversed(locks):
                lock.release()

    def run(
        self,
        account_ids,
        work: Callable[[UnitOfWork], T],
        attempts: int = 1,
    ) -> T:
        """
        Run ``work`` in a transaction over ``account_ids``, retrying transient
        failures up to ``attempts`` times before raising ServiceUnavailableError.
        """
        last_error: Optional[TransientStoreError] = None
        for attempt in range(1, attempts + 1):
            try:
                with self.transaction(*account_ids) as tx:
                    return work(tx)
            except TransientStoreError as e:
                last_error = e
                logger.warning(
                    "Transient store error on attempt %d/%d: %s", attempt, attempts, e
                )
        raise ServiceUnavailableError() from last_error
