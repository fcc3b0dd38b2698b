# src/txn_stress_test/workload/singleton.py
"""Workload mixing singleton operations with multi-statement transactions."""

from __future__ import annotations

from typing import Optional
import logging
import time

import numpy as np

from ..core.config import WorkloadConfig
from ..core.errors import Status, UnreachableOperationError
from ..core.metrics import MeasurementSink, elapsed_us
from ..core.synthesizer import KeySpace
from ..db.base import StorageBackend, FieldValueMap
from .base import Workload, run_bracketed
from .transactional import TransactionalWorkload

logger = logging.getLogger(__name__)


class SingletonWorkload(Workload):
    """
    Singleton read/update mix on top of the transactional workload.

    Every operation first picks SINGLETON or TXN. TXN is handed to the
    embedded TransactionalWorkload unchanged. SINGLETON picks a read or an
    update and runs it either as one atomic backend call (``truesingleton``)
    or as one statement in its own transaction. All singleton operations
    are measured under the single label ``SINGLETON``.

    During load, ``batchsize`` records are inserted per transaction.
    """

    SINGLETON = "SINGLETON"
    TRANSACTION = "TXN"
    READ = "READ"
    UPDATE = "UPDATE"

    def __init__(self,
                 config: WorkloadConfig,
                 keyspace: KeySpace,
                 measurements: Optional[MeasurementSink] = None,
                 random_source: Optional[np.random.Generator] = None):
        super().__init__("singleton", config, keyspace, measurements, random_source)

        self.transactional = TransactionalWorkload(config, keyspace, self.measurements, self.rng)
        self.synthesizer = self.transactional.synthesizer

        self.true_singleton = config.truesingleton
        self.batch_size = config.batchsize

        singleton_chooser = self.new_choice()
        if config.singletonproportion > 0:
            singleton_chooser.add_value(config.singletonproportion, self.SINGLETON)
        singleton_chooser.add_value(1.0 - config.singletonproportion, self.TRANSACTION)
        self.singleton_chooser = self.require_weight(singleton_chooser, "Singleton")

        operation_chooser = self.new_choice()
        if config.readproportion > 0:
            operation_chooser.add_value(config.readproportion, self.READ)
        operation_chooser.add_value(1.0 - config.readproportion, self.UPDATE)
        self.singleton_operation_chooser = self.require_weight(operation_chooser, "Singleton operation")

        logger.debug(f"Singleton workload: proportion={config.singletonproportion}, "
                     f"true_singleton={self.true_singleton}, batch_size={self.batch_size}")

    @property
    def records_per_insert(self) -> int:
        return self.batch_size

    def do_insert(self, db: StorageBackend) -> bool:
        """Load up to ``batchsize`` records in one transaction, stopping at the first failure."""
        start_ns = time.perf_counter_ns()
        status = Status.coerce(db.start_transaction())
        if not status.is_ok:
            logger.debug(f"Load batch could not start a transaction: {status.name}")
            self.measurements.measure(TransactionalWorkload.INSERT, elapsed_us(start_ns))
            self.measurements.report_status(TransactionalWorkload.INSERT, status)
            return False

        inserted = 0
        try:
            while inserted < self.batch_size:
                keynum = self.synthesizer.next_load_keynum()
                if keynum is None:
                    break
                key = self.synthesizer.build_key_name(keynum)
                status = Status.coerce(db.insert(self.table, key, self.synthesizer.build_values()))
                if not status.is_ok:
                    logger.debug(f"Load insert of {key} failed: {status.name}, ending batch")
                    break
                inserted += 1
        finally:
            commit_status = Status.coerce(db.commit_transaction())

        if status.is_ok:
            status = commit_status
        self.measurements.measure(TransactionalWorkload.INSERT, elapsed_us(start_ns))
        self.measurements.report_status(TransactionalWorkload.INSERT, status)
        return status.is_ok and inserted > 0

    def do_transaction(self, db: StorageBackend) -> bool:
        operation = self.singleton_chooser.next()

        if operation == self.SINGLETON:
            start_ns = time.perf_counter_ns()
            status = self._do_singleton_transaction(db)
            self.measurements.measure(self.SINGLETON, elapsed_us(start_ns))
            self.measurements.report_status(self.SINGLETON, status)
            return status.is_ok

        if operation == self.TRANSACTION:
            return self.transactional.do_transaction(db)

        logger.critical(f"Singleton chooser returned unknown operation '{operation}'")
        raise UnreachableOperationError(f"No branch for operation '{operation}'")

    def _do_singleton_transaction(self, db: StorageBackend) -> Status:
        operation = self.singleton_operation_chooser.next()

        if operation == self.READ:
            return self._singleton_read(db)
        if operation == self.UPDATE:
            return self._singleton_update(db)

        logger.critical(f"Singleton operation chooser returned unknown operation '{operation}'")
        raise UnreachableOperationError(f"No branch for singleton operation '{operation}'")

    def _singleton_read(self, db: StorageBackend) -> Status:
        key = self.synthesizer.build_key_name(self.synthesizer.next_keynum())
        fields = self.synthesizer.choose_read_fields()
        result: FieldValueMap = {}

        if self.true_singleton:
            return Status.coerce(db.singleton_read(self.table, key, fields, result))
        return run_bracketed(db, lambda: db.read(self.table, key, fields, result))

    def _singleton_update(self, db: StorageBackend) -> Status:
        key = self.synthesizer.build_key_name(self.synthesizer.next_keynum())
        values = self.synthesizer.build_write_values()

        if self.true_singleton:
            return Status.coerce(db.singleton_update(self.table, key, values))
        return run_bracketed(db, lambda: db.update(self.table, key, values))
