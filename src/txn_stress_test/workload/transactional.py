# src/txn_stress_test/workload/transactional.py
"""Multi-statement transactional workload."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional
import logging
import time

import numpy as np

from ..core.config import WorkloadConfig
from ..core.errors import Status, UnreachableOperationError
from ..core.metrics import MeasurementSink, elapsed_us
from ..core.synthesizer import KeySpace, KeyValueSynthesizer
from ..db.base import StorageBackend, FieldValueMap
from .base import Workload, run_bracketed

logger = logging.getLogger(__name__)


class TransactionalWorkload(Workload):
    """
    Read/update/insert/scan mix where every operation is its own transaction.

    Operations are drawn from a weighted choice built from the
    ``*proportion`` properties. Each is bracketed by start/commit and
    measured under its own label.
    """

    READ = "READ"
    UPDATE = "UPDATE"
    INSERT = "INSERT"
    SCAN = "SCAN"
    READ_MODIFY_WRITE = "READ-MODIFY-WRITE"

    def __init__(self,
                 config: WorkloadConfig,
                 keyspace: KeySpace,
                 measurements: Optional[MeasurementSink] = None,
                 random_source: Optional[np.random.Generator] = None,
                 name: str = "transactional"):
        super().__init__(name, config, keyspace, measurements, random_source)

        self.synthesizer = KeyValueSynthesizer(config, keyspace, self.rng)
        self.operation_chooser = self.require_weight(self._build_operation_chooser(), "Operation")

        self._handlers: Dict[str, Callable[[StorageBackend], Status]] = {
            self.READ: self._transaction_read,
            self.UPDATE: self._transaction_update,
            self.INSERT: self._transaction_insert,
            self.SCAN: self._transaction_scan,
            self.READ_MODIFY_WRITE: self._transaction_read_modify_write,
        }

    def _build_operation_chooser(self):
        chooser = self.new_choice()
        mix = (
            (self.config.readproportion, self.READ),
            (self.config.updateproportion, self.UPDATE),
            (self.config.insertproportion, self.INSERT),
            (self.config.scanproportion, self.SCAN),
            (self.config.readmodifywriteproportion, self.READ_MODIFY_WRITE),
        )
        for proportion, label in mix:
            if proportion > 0:
                chooser.add_value(proportion, label)
        return chooser

    def do_insert(self, db: StorageBackend) -> bool:
        """Load one record in its own transaction."""
        keynum = self.synthesizer.next_load_keynum()
        if keynum is None:
            logger.debug("Load range exhausted, nothing to insert")
            return False

        key = self.synthesizer.build_key_name(keynum)
        values = self.synthesizer.build_values()

        start_ns = time.perf_counter_ns()
        status = run_bracketed(db, lambda: db.insert(self.table, key, values))
        self.measurements.measure(self.INSERT, elapsed_us(start_ns))
        self.measurements.report_status(self.INSERT, status)

        if not status.is_ok:
            logger.debug(f"Load insert of {key} failed: {status.name}")
        return status.is_ok

    def do_transaction(self, db: StorageBackend) -> bool:
        operation = self.operation_chooser.next()
        handler = self._handlers.get(operation)
        if handler is None:
            logger.critical(f"Operation chooser returned unknown operation '{operation}'")
            raise UnreachableOperationError(f"No branch for operation '{operation}'")

        start_ns = time.perf_counter_ns()
        status = handler(db)
        self.measurements.measure(operation, elapsed_us(start_ns))
        self.measurements.report_status(operation, status)
        return status.is_ok

    def _transaction_read(self, db: StorageBackend) -> Status:
        key = self.synthesizer.build_key_name(self.synthesizer.next_keynum())
        fields = self.synthesizer.choose_read_fields()
        result: FieldValueMap = {}
        return run_bracketed(db, lambda: db.read(self.table, key, fields, result))

    def _transaction_update(self, db: StorageBackend) -> Status:
        key = self.synthesizer.build_key_name(self.synthesizer.next_keynum())
        values = self.synthesizer.build_write_values()
        return run_bracketed(db, lambda: db.update(self.table, key, values))

    def _transaction_insert(self, db: StorageBackend) -> Status:
        keynum = self.synthesizer.next_insert_keynum()
        try:
            key = self.synthesizer.build_key_name(keynum)
            values = self.synthesizer.build_values()
            return run_bracketed(db, lambda: db.insert(self.table, key, values))
        finally:
            # Failed inserts are acknowledged too so the readable range keeps moving
            self.synthesizer.acknowledge_insert(keynum)

    def _transaction_scan(self, db: StorageBackend) -> Status:
        start_key = self.synthesizer.build_key_name(self.synthesizer.next_keynum())
        length = self.synthesizer.next_scan_length()
        fields = self.synthesizer.choose_read_fields()
        result: List[FieldValueMap] = []
        return run_bracketed(db, lambda: db.scan(self.table, start_key, length, fields, result))

    def _transaction_read_modify_write(self, db: StorageBackend) -> Status:
        key = self.synthesizer.build_key_name(self.synthesizer.next_keynum())
        fields = self.synthesizer.choose_read_fields()
        values = self.synthesizer.build_write_values()

        def read_then_update() -> Status:
            result: FieldValueMap = {}
            status = Status.coerce(db.read(self.table, key, fields, result))
            if not status.is_ok:
                return status
            return db.update(self.table, key, values)

        return run_bracketed(db, read_then_update)
