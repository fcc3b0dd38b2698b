# src/txn_stress_test/workload/registry.py
"""Workload registration and discovery."""

from __future__ import annotations

from typing import Dict, Type, List, Optional
import logging
import inspect

import numpy as np

from .base import Workload

logger = logging.getLogger(__name__)


class WorkloadRegistry:
    """Registry for available workloads."""

    _workloads: Dict[str, Type[Workload]] = {}
    _descriptions: Dict[str, str] = {}

    @classmethod
    def register(cls,
                 name: str,
                 workload_class: Type[Workload],
                 description: Optional[str] = None) -> None:
        """
        Register a workload class.

        Args:
            name: Unique name for the workload
            workload_class: Workload class (must inherit from Workload)
            description: Optional description of the workload
        """
        if not inspect.isclass(workload_class):
            raise TypeError(f"Expected class, got {type(workload_class)}")

        if not issubclass(workload_class, Workload):
            raise TypeError(f"{workload_class.__name__} must inherit from Workload")

        if name in cls._workloads:
            logger.warning(f"Overwriting existing workload registration: {name}")

        cls._workloads[name] = workload_class
        cls._descriptions[name] = description or workload_class.__doc__ or "No description available"

        logger.debug(f"Registered workload: {name} -> {workload_class.__name__}")

    @classmethod
    def get(cls, name: str) -> Type[Workload]:
        """
        Get a workload class by name.

        Raises:
            KeyError: If workload not found
        """
        if name not in cls._workloads:
            available = ", ".join(sorted(cls._workloads))
            raise KeyError(f"Workload '{name}' not found. Available workloads: {available}")

        return cls._workloads[name]

    @classmethod
    def create_instance(cls, name: str, **kwargs) -> Workload:
        """
        Create a workload instance by name.

        Args:
            name: Workload name
            **kwargs: Arguments to pass to workload constructor
        """
        workload_class = cls.get(name)
        return workload_class(**kwargs)

    @classmethod
    def list_workloads(cls) -> List[str]:
        """Sorted list of workload names."""
        return sorted(cls._workloads.keys())

    @classmethod
    def get_workload_info(cls) -> List[Dict[str, str]]:
        """Information about all registered workloads."""
        info = []
        for name in cls.list_workloads():
            info.append({
                "name": name,
                "class": cls._workloads[name].__name__,
                "module": cls._workloads[name].__module__,
                "description": cls._descriptions[name].strip().splitlines()[0],
            })
        return info

    @classmethod
    def clear(cls) -> None:
        """Clear all registered workloads (mainly for testing)."""
        cls._workloads.clear()
        cls._descriptions.clear()


def thread_random_source(seed: Optional[int], thread_id: int) -> np.random.Generator:
    """
    Private random source for one client thread.

    With a seed, every thread gets its own reproducible stream; without one
    the streams come from fresh OS entropy.
    """
    if seed is None:
        return np.random.default_rng()
    return np.random.default_rng([seed, thread_id])


def register_builtin_workloads():
    """Register all built-in workloads."""
    from .transactional import TransactionalWorkload
    from .singleton import SingletonWorkload

    WorkloadRegistry.register(
        "transactional",
        TransactionalWorkload,
        "Read/update/insert/scan mix, one transaction per operation"
    )

    WorkloadRegistry.register(
        "singleton",
        SingletonWorkload,
        "Singleton reads/updates mixed with multi-statement transactions"
    )

    logger.debug(f"Registered {len(WorkloadRegistry._workloads)} built-in workloads")


register_builtin_workloads()
