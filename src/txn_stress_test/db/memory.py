# src/txn_stress_test/db/memory.py
"""In-process transactional backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple
import bisect
import logging
import threading

from ..core.config import Config
from ..core.errors import Status
from .base import StorageBackend, FieldValueMap

logger = logging.getLogger(__name__)


class MemoryStore:
    """Record store shared by every in-memory backend instance of a process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tables: Dict[str, Dict[str, FieldValueMap]] = {}
        self._sorted_keys: Dict[str, List[str]] = {}

    def ensure_table(self, table: str) -> None:
        with self._lock:
            self._tables.setdefault(table, {})
            self._sorted_keys.setdefault(table, [])

    def get(self, table: str, key: str) -> Optional[FieldValueMap]:
        """Copy of a record, or None."""
        with self._lock:
            record = self._tables.get(table, {}).get(key)
            return dict(record) if record is not None else None

    def scan_keys(self, table: str, start_key: str, record_count: int) -> List[str]:
        with self._lock:
            keys = self._sorted_keys.get(table, [])
            start = bisect.bisect_left(keys, start_key)
            return keys[start:start + record_count]

    def apply(self, writes: List[Tuple[str, str, FieldValueMap]]) -> None:
        """Apply a list of (table, key, values) writes atomically."""
        with self._lock:
            for table, key, values in writes:
                records = self._tables.setdefault(table, {})
                record = records.get(key)
                if record is None:
                    records[key] = dict(values)
                    bisect.insort(self._sorted_keys.setdefault(table, []), key)
                else:
                    record.update(values)

    def record_count(self, table: str) -> int:
        with self._lock:
            return len(self._tables.get(table, {}))

    def clear(self) -> None:
        with self._lock:
            self._tables.clear()
            self._sorted_keys.clear()


_default_store = MemoryStore()


def default_store() -> MemoryStore:
    """The store shared by backends created without an explicit one."""
    return _default_store


@dataclass
class _MemoryTransaction:
    """Writes buffered until commit."""
    writes: Dict[Tuple[str, str], FieldValueMap] = field(default_factory=dict)

    def buffered(self, table: str, key: str) -> Optional[FieldValueMap]:
        return self.writes.get((table, key))

    def add(self, table: str, key: str, values: FieldValueMap) -> None:
        self.writes.setdefault((table, key), {}).update(values)


def _project(record: FieldValueMap, fields: Optional[Set[str]], result: FieldValueMap) -> None:
    if fields is None:
        result.update(record)
    else:
        result.update({name: value for name, value in record.items() if name in fields})


class InMemoryBackend(StorageBackend):
    """
    Transactional backend keeping records in process memory.

    Writes of a transaction are buffered and applied to the shared store
    in one atomic step at commit; reads inside the transaction see them.
    """

    def __init__(self, store: Optional[MemoryStore] = None):
        super().__init__()
        self.store = store if store is not None else default_store()
        self._txn: Optional[_MemoryTransaction] = None

    @classmethod
    def factory(cls, config: Config) -> Callable[[], "InMemoryBackend"]:
        store = default_store()
        return lambda: cls(store)

    def cleanup(self) -> None:
        if self._txn is not None:
            logger.warning(f"Discarding open transaction with {len(self._txn.writes)} buffered writes")
            self._txn = None

    def _open_table(self, table: str) -> str:
        self.store.ensure_table(table)
        return table

    @property
    def in_transaction(self) -> bool:
        return self._txn is not None

    def start_transaction(self) -> Status:
        if self._txn is not None:
            logger.warning("start_transaction called while a transaction is open")
            return Status.ERROR
        self._txn = _MemoryTransaction()
        return Status.OK

    def commit_transaction(self) -> Status:
        if self._txn is None:
            logger.warning("commit_transaction called without an open transaction")
            return Status.ERROR
        txn, self._txn = self._txn, None
        self.store.apply([(table, key, values) for (table, key), values in txn.writes.items()])
        return Status.OK

    def _current(self, table: str, key: str) -> Optional[FieldValueMap]:
        record = self.store.get(table, key)
        if self._txn is not None:
            pending = self._txn.buffered(table, key)
            if pending is not None:
                record = {**(record or {}), **pending}
        return record

    def read(self, table, key, fields, result) -> Status:
        if self._txn is None:
            logger.debug(f"read of {key} outside a transaction")
            return Status.ERROR
        self.get_table(table)
        record = self._current(table, key)
        if record is None:
            return Status.NOT_FOUND
        _project(record, fields, result)
        return Status.OK

    def update(self, table, key, values) -> Status:
        if self._txn is None:
            logger.debug(f"update of {key} outside a transaction")
            return Status.ERROR
        self.get_table(table)
        self._txn.add(table, key, values)
        return Status.OK

    def insert(self, table, key, values) -> Status:
        if self._txn is None:
            logger.debug(f"insert of {key} outside a transaction")
            return Status.ERROR
        self.get_table(table)
        self._txn.add(table, key, values)
        return Status.OK

    def scan(self, table, start_key, record_count, fields, result) -> Status:
        if self._txn is None:
            logger.debug(f"scan from {start_key} outside a transaction")
            return Status.ERROR
        self.get_table(table)
        for key in self.store.scan_keys(table, start_key, record_count):
            record = self._current(table, key)
            if record is None:
                continue
            row: FieldValueMap = {}
            _project(record, fields, row)
            result.append(row)
        return Status.OK

    def singleton_read(self, table, key, fields, result) -> Status:
        if self._txn is not None:
            logger.error("Client performed singleton read while in transaction context")
            return Status.SINGLETON_WHILE_IN_TRANSACTION
        self.get_table(table)
        record = self.store.get(table, key)
        if record is None:
            return Status.NOT_FOUND
        _project(record, fields, result)
        return Status.OK

    def singleton_update(self, table, key, values) -> Status:
        if self._txn is not None:
            logger.error("Client performed singleton update while in transaction context")
            return Status.SINGLETON_WHILE_IN_TRANSACTION
        self.get_table(table)
        self.store.apply([(table, key, values)])
        return Status.OK
