# src/txn_stress_test/workload/__init__.py
"""Workload execution components."""

from .base import (
    Workload,
    WorkloadResult,
    run_bracketed,
)
from .transactional import TransactionalWorkload
from .singleton import SingletonWorkload
from .executor import (
    WorkloadExecutor,
    ThreadResult,
    LOAD_PHASE,
    RUN_PHASE,
    create_workloads,
    run_workload,
    split_operations,
)
from .registry import (
    WorkloadRegistry,
    register_builtin_workloads,
    thread_random_source,
)

__all__ = [
    # Base classes
    "Workload",
    "WorkloadResult",
    "run_bracketed",

    # Built-in workloads
    "TransactionalWorkload",
    "SingletonWorkload",

    # Executor
    "WorkloadExecutor",
    "ThreadResult",
    "LOAD_PHASE",
    "RUN_PHASE",
    "create_workloads",
    "run_workload",
    "split_operations",

    # Registry
    "WorkloadRegistry",
    "register_builtin_workloads",
    "thread_random_source",
]
