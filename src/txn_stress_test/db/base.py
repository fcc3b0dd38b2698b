# src/txn_stress_test/db/base.py
"""Storage backend contract consumed by the workloads."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Set
import logging
import threading

from ..core.config import Config
from ..core.errors import Status

logger = logging.getLogger(__name__)

FieldValueMap = Dict[str, bytes]


class StorageBackend(ABC):
    """
    Abstract storage backend.

    One instance is used by exactly one client thread. Every operation
    returns a ``Status``; backends never raise for an ordinary failure.

    Ordinary statements (``read``, ``update``, ``insert``, ``scan``) are only
    valid between a successful ``start_transaction`` and the matching
    ``commit_transaction``. Singleton operations run as one atomic call and
    must report ``Status.SINGLETON_WHILE_IN_TRANSACTION`` when a transaction
    is open on the same instance.
    """

    # Held only while a table handle is being built, never across an operation
    _table_lock = threading.Lock()

    def __init__(self):
        """Initialize the per-thread table handle cache."""
        self._tables: Dict[str, Any] = {}

    @classmethod
    def factory(cls, config: Config) -> Callable[[], "StorageBackend"]:
        """
        Return a callable creating one backend instance per client thread.

        Resources shared by all threads of a run (connection pools, stores)
        are created here, once.
        """
        return cls

    def init(self) -> None:
        """Prepare this instance for use; called once by its client thread."""
        pass

    def cleanup(self) -> None:
        """Release resources held by this instance."""
        pass

    def get_table(self, table: str) -> Any:
        """Return the cached handle for a table, building it on first use."""
        handle = self._tables.get(table)
        if handle is None:
            with StorageBackend._table_lock:
                handle = self._open_table(table)
            self._tables[table] = handle
            logger.debug(f"Opened table handle for {table}")
        return handle

    @abstractmethod
    def _open_table(self, table: str) -> Any:
        """Build a handle for a table."""
        pass

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Whether a transaction is currently open on this instance."""
        pass

    @abstractmethod
    def start_transaction(self) -> Status:
        """Begin a transaction."""
        pass

    @abstractmethod
    def commit_transaction(self) -> Status:
        """Finish the open transaction and release its resources."""
        pass

    @abstractmethod
    def read(self,
             table: str,
             key: str,
             fields: Optional[Set[str]],
             result: FieldValueMap) -> Status:
        """
        Read a record inside the open transaction.

        Args:
            table: Table name
            key: Record key
            fields: Fields to read, or None for all of them
            result: Filled with the field/value pairs read

        Returns:
            Status of the operation
        """
        pass

    @abstractmethod
    def update(self, table: str, key: str, values: FieldValueMap) -> Status:
        """Overwrite the given fields of a record inside the open transaction."""
        pass

    @abstractmethod
    def insert(self, table: str, key: str, values: FieldValueMap) -> Status:
        """Insert a record inside the open transaction."""
        pass

    @abstractmethod
    def scan(self,
             table: str,
             start_key: str,
             record_count: int,
             fields: Optional[Set[str]],
             result: List[FieldValueMap]) -> Status:
        """Read up to ``record_count`` records in key order starting at ``start_key``."""
        pass

    @abstractmethod
    def singleton_read(self,
                       table: str,
                       key: str,
                       fields: Optional[Set[str]],
                       result: FieldValueMap) -> Status:
        """Read a record as one atomic operation, outside any transaction."""
        pass

    @abstractmethod
    def singleton_update(self, table: str, key: str, values: FieldValueMap) -> Status:
        """Update a record as one atomic operation, outside any transaction."""
        pass
