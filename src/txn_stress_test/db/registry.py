# src/txn_stress_test/db/registry.py
"""Storage backend registration and lookup."""

from __future__ import annotations

from typing import Dict, Type, List, Optional
import inspect
import logging

from .base import StorageBackend

logger = logging.getLogger(__name__)


class BackendRegistry:
    """Registry for available storage backends."""

    _backends: Dict[str, Type[StorageBackend]] = {}
    _descriptions: Dict[str, str] = {}

    @classmethod
    def register(cls,
                 name: str,
                 backend_class: Type[StorageBackend],
                 description: Optional[str] = None) -> None:
        """
        Register a backend class.

        Args:
            name: Unique name for the backend
            backend_class: Backend class (must inherit from StorageBackend)
            description: Optional description of the backend
        """
        if not inspect.isclass(backend_class):
            raise TypeError(f"Expected class, got {type(backend_class)}")

        if not issubclass(backend_class, StorageBackend):
            raise TypeError(f"{backend_class.__name__} must inherit from StorageBackend")

        if name in cls._backends:
            logger.warning(f"Overwriting existing backend registration: {name}")

        cls._backends[name] = backend_class
        cls._descriptions[name] = description or backend_class.__doc__ or "No description available"

        logger.debug(f"Registered backend: {name} -> {backend_class.__name__}")

    @classmethod
    def get(cls, name: str) -> Type[StorageBackend]:
        """
        Get a backend class by name.

        Raises:
            KeyError: If backend not found
        """
        if name not in cls._backends:
            available = ", ".join(sorted(cls._backends))
            raise KeyError(f"Backend '{name}' not found. Available backends: {available}")

        return cls._backends[name]

    @classmethod
    def list_backends(cls) -> List[str]:
        """Sorted list of backend names."""
        return sorted(cls._backends.keys())

    @classmethod
    def get_backend_info(cls) -> List[Dict[str, str]]:
        """Information about all registered backends."""
        return [
            {
                "name": name,
                "class": cls._backends[name].__name__,
                "module": cls._backends[name].__module__,
                "description": cls._descriptions[name].strip().splitlines()[0],
            }
            for name in cls.list_backends()
        ]

    @classmethod
    def clear(cls) -> None:
        """Clear all registered backends (mainly for testing)."""
        cls._backends.clear()
        cls._descriptions.clear()


def register_builtin_backends() -> None:
    """Register all built-in backends."""
    from .memory import InMemoryBackend
    from .redis_backend import RedisBackend

    BackendRegistry.register(
        "memory",
        InMemoryBackend,
        "In-process transactional store"
    )

    BackendRegistry.register(
        "redis",
        RedisBackend,
        "Redis/Valkey with WATCH/MULTI/EXEC transactions"
    )
