from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from cable_erp.storage import DurableStore
from cable_erp.utils import now

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = ("id", "created_at")


class IdGenerator:
    """
    Millisecond-epoch identifiers that never repeat within the process: two
    creates in the same millisecond get consecutive values.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate

    def observe(self, ids: Iterable[Any]) -> None:
        numeric = [int(i) for i in ids if isinstance(i, int)]
        if numeric:
            with self._lock:
                self._last = max(self._last, max(numeric))


@dataclass(frozen=True)
class EntitySpec:
    name: str                                   # pending-sync counter key
    key: str                                    # durable storage key
    field: Optional[str] = None                 # wrapper field, None for a bare array
    date_fields: tuple[str, ...] = ("created_at",)
    newest_first: bool = False                  # transactional logs prepend, catalogs append
    sync_table: Optional[str] = None            # remote table; None keeps the type local-only
    migrate: Optional[Callable[[dict], dict]] = None
    seed: Optional[Callable[[], list[dict]]] = None


class EntityStore:
    """
    In-memory collection of one entity type mirrored to the durable store.

    Every mutation rewrites the full collection and marks the type pending for
    sync. Update and delete of an unknown id are silent no-ops. A failed save
    keeps the in-memory change and is reported through ``last_error``.
    """

    def __init__(self, durable: DurableStore, spec: EntitySpec, *, ids: IdGenerator, sync=None):
        self.durable = durable
        self.spec = spec
        self.ids = ids
        self.sync = sync
        self.last_error: Optional[str] = None
        self._records: list[dict] = []
        self.reload()

    @property
    def name(self) -> str:
        return self.spec.name

    def __len__(self) -> int:
        return len(self._records)

    # -------------------------
    # Loading / persistence
    # -------------------------

    def reload(self) -> None:
        spec = self.spec
        if spec.seed is not None and self.durable.read_raw(spec.key) is None:
            records = []
            for r in spec.seed():
                r = dict(r)
                r.setdefault("id", self.ids.next_id())
                r.setdefault("created_at", now())
                records.append(r)
            self._records = records
            self._persist()
        else:
            records = self.durable.load(spec.key, field=spec.field, date_fields=spec.date_fields)
            if spec.migrate is not None:
                records = [spec.migrate(r) for r in records]
            self._records = records
        self.ids.observe(r.get("id") for r in self._records)

    def _persist(self) -> bool:
        ok = self.durable.save(self.spec.key, self._records, field=self.spec.field)
        if not ok:
            # One retry; a second failure leaves memory ahead of storage.
            ok = self.durable.save(self.spec.key, self._records, field=self.spec.field)
        if ok:
            self.last_error = None
        else:
            self.last_error = f"Could not save {self.spec.name}; changes are kept in memory only."
            logger.error(self.last_error)
        return ok

    def _commit(self) -> None:
        self._persist()
        if self.sync is not None and self.spec.sync_table:
            self.sync.mark_pending(self.spec.name)

    def snapshot(self) -> list[dict]:
        return copy.deepcopy(self._records)

    # -------------------------
    # Queries
    # -------------------------

    def all(self) -> list[dict]:
        return self.snapshot()

    def get_by_id(self, record_id) -> Optional[dict]:
        for r in self._records:
            if r.get("id") == record_id:
                return copy.deepcopy(r)
        return None

    def query(self, predicate: Callable[[dict], bool]) -> list[dict]:
        return [copy.deepcopy(r) for r in self._records if predicate(r)]

    # -------------------------
    # Mutations
    # -------------------------

    def create(self, data: dict) -> dict:
        record = {k: v for k, v in dict(data).items() if k not in PROTECTED_FIELDS}
        record["id"] = self.ids.next_id()
        record["created_at"] = now()
        if self.spec.newest_first:
            self._records.insert(0, record)
        else:
            self._records.append(record)
        self._commit()
        return copy.deepcopy(record)

    def update(self, record_id, changes: dict) -> Optional[dict]:
        for r in self._records:
            if r.get("id") == record_id:
                r.update({k: v for k, v in dict(changes).items() if k not in PROTECTED_FIELDS})
                self._commit()
                return copy.deepcopy(r)
        return None

    def delete(self, record_id) -> bool:
        remaining = [r for r in self._records if r.get("id") != record_id]
        if len(remaining) == len(self._records):
            return False
        self._records = remaining
        self._commit()
        return True

    def replace_all(self, records: list[dict]) -> None:
        self._records = [dict(r) for r in records]
        self.ids.observe(r.get("id") for r in self._records)
        self._commit()
