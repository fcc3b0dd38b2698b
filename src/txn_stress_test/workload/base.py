# src/txn_stress_test/workload/base.py
"""Base classes for workload implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Callable
from dataclasses import dataclass, field
import logging

import numpy as np

from ..core.config import WorkloadConfig
from ..core.errors import ConfigurationError, Status
from ..core.generators import WeightedChoice
from ..core.metrics import MeasurementSink, Measurements
from ..core.synthesizer import KeySpace
from ..db.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class WorkloadResult:
    """Results from one phase of a run."""
    phase: str
    success_count: int
    failure_count: int
    total_time_seconds: float
    operations_per_second: float
    operations: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    additional_metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.success_count + self.failure_count
        if total == 0:
            return 0.0
        return self.success_count / total

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "phase": self.phase,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "total_time_seconds": self.total_time_seconds,
            "operations_per_second": self.operations_per_second,
            "success_rate": self.success_rate,
            "operations": self.operations,
            "error_count": len(self.errors),
            **self.additional_metrics
        }


def run_bracketed(db: StorageBackend, statement: Callable[[], int]) -> Status:
    """
    Run one statement inside its own transaction.

    If the transaction cannot be started nothing else is called. Once it
    started, commit is always called, also when the statement failed,
    and the first failure wins.
    """
    status = Status.coerce(db.start_transaction())
    if not status.is_ok:
        logger.debug(f"start_transaction failed with {status.name}, skipping operation")
        return status

    try:
        status = Status.coerce(statement())
    finally:
        commit_status = Status.coerce(db.commit_transaction())

    return status if not status.is_ok else commit_status


class Workload(ABC):
    """
    Operation generator for one client thread.

    Each client thread owns its own instance: the random source, choice
    tables and synthesizer are private, only the KeySpace counters and the
    measurement sink are shared.
    """

    def __init__(self,
                 name: str,
                 config: WorkloadConfig,
                 keyspace: KeySpace,
                 measurements: Optional[MeasurementSink] = None,
                 random_source: Optional[np.random.Generator] = None):
        """
        Initialize base workload.

        Args:
            name: Workload name
            config: Workload configuration
            keyspace: Key counters shared by all client threads
            measurements: Sink receiving latency samples
            random_source: Private random source of this thread
        """
        self.name = name
        self.config = config
        self.keyspace = keyspace
        self.measurements = measurements if measurements is not None else Measurements()
        self.rng = random_source if random_source is not None else np.random.default_rng()
        self.table = config.table

    @property
    def records_per_insert(self) -> int:
        """Keys written by one ``do_insert`` call."""
        return 1

    @abstractmethod
    def do_insert(self, db: StorageBackend) -> bool:
        """
        Insert data during the load phase.

        Returns:
            True if the insert succeeded
        """
        pass

    @abstractmethod
    def do_transaction(self, db: StorageBackend) -> bool:
        """
        Run one logical operation of the measured phase.

        Backend failures are reported through the return value, never raised.

        Returns:
            True if the operation succeeded
        """
        pass

    def new_choice(self) -> WeightedChoice:
        """A weighted choice drawing from this workload's random source."""
        return WeightedChoice(self.rng)

    @staticmethod
    def require_weight(chooser: WeightedChoice, what: str) -> WeightedChoice:
        """Fail initialization when a choice table cannot produce any label."""
        if chooser.total_weight <= 0:
            raise ConfigurationError(f"{what} proportions sum to zero")
        return chooser
