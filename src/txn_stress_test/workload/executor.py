# src/txn_stress_test/workload/executor.py
"""Multi-threaded workload execution engine."""

from __future__ import annotations

import concurrent.futures
from typing import List, Optional, Callable
import logging
import math
import threading
import time
from dataclasses import dataclass, field

from ..core.config import Config
from ..core.errors import ConfigurationError, UnreachableOperationError
from ..core.metrics import Measurements
from ..core.synthesizer import KeySpace
from ..db.base import StorageBackend
from ..db.registry import BackendRegistry
from .base import Workload, WorkloadResult
from .registry import WorkloadRegistry, thread_random_source

logger = logging.getLogger(__name__)

LOAD_PHASE = "load"
RUN_PHASE = "run"
PHASES = (LOAD_PHASE, RUN_PHASE)

# Errors meaning the run itself is broken; they stop every thread
_FATAL_ERRORS = (UnreachableOperationError, ConfigurationError)


@dataclass
class ThreadResult:
    """Results from a single client thread."""
    thread_id: int
    success_count: int
    failure_count: int
    elapsed_time: float
    errors: List[str] = field(default_factory=list)


def split_operations(total: int, n_threads: int) -> List[int]:
    """Share of ``total`` for each thread; the first threads take the remainder."""
    base, remainder = divmod(total, n_threads)
    return [base + (1 if thread_id < remainder else 0) for thread_id in range(n_threads)]


class WorkloadExecutor:
    """Drives one workload instance per client thread against its own backend instance."""

    def __init__(self, target_ops_per_second: float = 0.0, max_execution_time: float = 0.0):
        """
        Initialize executor.

        Args:
            target_ops_per_second: Throughput target across all threads, 0 for unthrottled
            max_execution_time: Seconds after which threads stop issuing operations, 0 for no limit
        """
        self.target_ops_per_second = target_ops_per_second
        self.max_execution_time = max_execution_time
        self._stop_event = threading.Event()

    def execute(self,
                phase: str,
                workloads: List[Workload],
                backend_factory: Callable[[], StorageBackend],
                operation_count: int,
                measurements: Optional[Measurements] = None) -> WorkloadResult:
        """
        Run one phase.

        Args:
            phase: ``load`` (``do_insert`` calls) or ``run`` (``do_transaction`` calls)
            workloads: One workload instance per client thread
            backend_factory: Creates the backend instance of each thread
            operation_count: Workload calls to issue, split across threads
            measurements: Sink shared by the workloads, summarized into the result

        Returns:
            Aggregated WorkloadResult

        Raises:
            UnreachableOperationError: A workload hit an impossible choice
            ConfigurationError: A workload found the configuration unusable
        """
        if phase not in PHASES:
            raise ValueError(f"Unknown phase: {phase}")
        if not workloads:
            raise ValueError("At least one workload instance is required")

        n_threads = len(workloads)
        shares = split_operations(operation_count, n_threads)
        self._stop_event.clear()

        logger.info(f"Starting {phase} phase: {operation_count} operations on {n_threads} threads")
        start_time = time.perf_counter()

        thread_results: List[ThreadResult] = []
        fatal: Optional[BaseException] = None

        with concurrent.futures.ThreadPoolExecutor(max_workers=n_threads,
                                                   thread_name_prefix="tst-client") as pool:
            futures = [
                pool.submit(self._thread_worker, thread_id, phase, workload,
                            backend_factory, shares[thread_id], n_threads)
                for thread_id, workload in enumerate(workloads)
            ]

            try:
                _, pending = concurrent.futures.wait(
                    futures,
                    timeout=self.max_execution_time or None,
                    return_when=concurrent.futures.FIRST_EXCEPTION,
                )
            except KeyboardInterrupt:
                logger.warning("Interrupted, letting in-flight operations finish")
                self._stop_event.set()
                raise

            if pending:
                if not any(f.done() and f.exception() is not None for f in futures):
                    logger.info(f"Duration limit reached ({self.max_execution_time}s), stopping workload")
                self._stop_event.set()

            for future in futures:
                try:
                    thread_results.append(future.result())
                except _FATAL_ERRORS as e:
                    logger.critical(f"Aborting run: {e}")
                    if fatal is None:
                        fatal = e

        if fatal is not None:
            raise fatal

        result = self._aggregate_results(phase, thread_results, start_time, measurements)
        logger.info(f"{phase} phase completed: {result.success_count} succeeded, "
                    f"{result.failure_count} failed, {result.operations_per_second:.2f} ops/sec")
        return result

    def _thread_worker(self,
                       thread_id: int,
                       phase: str,
                       workload: Workload,
                       backend_factory: Callable[[], StorageBackend],
                       operations: int,
                       n_threads: int) -> ThreadResult:
        """
        Issue this thread's share of operations.

        The stop event is only checked between operations, a started
        operation always runs to completion.
        """
        logger.debug(f"Thread {thread_id} starting with {operations} operations")
        start_time = time.perf_counter()
        success_count = 0
        failure_count = 0
        errors: List[str] = []
        per_thread_target = self.target_ops_per_second / n_threads

        db = backend_factory()
        try:
            db.init()
            step = workload.do_insert if phase == LOAD_PHASE else workload.do_transaction

            for done in range(operations):
                if self._stop_event.is_set():
                    break

                if step(db):
                    success_count += 1
                else:
                    failure_count += 1

                if per_thread_target > 0:
                    self._throttle(start_time, done + 1, per_thread_target)

        except _FATAL_ERRORS:
            self._stop_event.set()
            raise
        except Exception as e:
            logger.error(f"Thread {thread_id} failed: {e}")
            errors.append(str(e))
        finally:
            db.cleanup()

        elapsed_time = time.perf_counter() - start_time
        logger.debug(f"Thread {thread_id} completed: {success_count} ok, {failure_count} failed")

        return ThreadResult(
            thread_id=thread_id,
            success_count=success_count,
            failure_count=failure_count,
            elapsed_time=elapsed_time,
            errors=errors,
        )

    def _throttle(self, start_time: float, operations_done: int, ops_per_second: float) -> None:
        """Sleep until this thread is back on its target schedule."""
        deadline = start_time + operations_done / ops_per_second
        delay = deadline - time.perf_counter()
        if delay > 0:
            self._stop_event.wait(delay)

    def _aggregate_results(self,
                           phase: str,
                           thread_results: List[ThreadResult],
                           start_time: float,
                           measurements: Optional[Measurements]) -> WorkloadResult:
        """Aggregate results from all threads."""
        total_success = sum(r.success_count for r in thread_results)
        total_failure = sum(r.failure_count for r in thread_results)
        all_errors: List[str] = []
        for result in thread_results:
            all_errors.extend(result.errors)

        elapsed_time = time.perf_counter() - start_time
        total_operations = total_success + total_failure
        ops_per_second = total_operations / elapsed_time if elapsed_time > 0 else 0.0

        additional_metrics = {
            "threads_used": len(thread_results),
            "avg_ops_per_thread": total_operations / len(thread_results) if thread_results else 0,
            "stopped_early": self._stop_event.is_set(),
        }

        return WorkloadResult(
            phase=phase,
            success_count=total_success,
            failure_count=total_failure,
            total_time_seconds=elapsed_time,
            operations_per_second=ops_per_second,
            operations=measurements.summary() if measurements is not None else {},
            errors=all_errors[:1000],
            additional_metrics=additional_metrics,
        )

    def shutdown(self) -> None:
        """Ask all threads to stop after their current operation."""
        logger.info("Stopping workload executor")
        self._stop_event.set()


def create_workloads(config: Config,
                     keyspace: KeySpace,
                     measurements: Measurements) -> List[Workload]:
    """One workload instance per configured client thread, each with its own random source."""
    client = config.client
    return [
        WorkloadRegistry.create_instance(
            client.workload,
            config=config.workload,
            keyspace=keyspace,
            measurements=measurements,
            random_source=thread_random_source(client.seed, thread_id),
        )
        for thread_id in range(client.threads)
    ]


def run_workload(config: Config,
                 phase: str,
                 measurements: Optional[Measurements] = None,
                 keyspace: Optional[KeySpace] = None) -> WorkloadResult:
    """
    Run the load or the transaction phase described by a configuration.

    Args:
        config: Full configuration
        phase: ``load`` or ``run``
        measurements: Sink to collect into, a fresh one by default
        keyspace: Key counters to share, built from the configuration by default
    """
    measurements = measurements if measurements is not None else Measurements()
    keyspace = keyspace if keyspace is not None else KeySpace.from_config(config.workload)

    workloads = create_workloads(config, keyspace, measurements)
    backend_factory = BackendRegistry.get(config.client.backend).factory(config)

    if phase == LOAD_PHASE:
        operation_count = math.ceil(config.workload.recordcount / workloads[0].records_per_insert)
    else:
        operation_count = config.workload.operationcount

    executor = WorkloadExecutor(config.client.target, config.client.max_execution_time)
    return executor.execute(phase, workloads, backend_factory, operation_count, measurements)
