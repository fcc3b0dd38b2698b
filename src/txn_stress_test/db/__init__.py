"""Storage backends."""

from .base import StorageBackend, FieldValueMap
from .memory import InMemoryBackend, MemoryStore, default_store
from .redis_backend import RedisBackend, RedisTable, create_connection_pool
from .registry import BackendRegistry, register_builtin_backends

__all__ = [
    "StorageBackend",
    "FieldValueMap",
    "InMemoryBackend",
    "MemoryStore",
    "default_store",
    "RedisBackend",
    "RedisTable",
    "create_connection_pool",
    "BackendRegistry",
    "register_builtin_backends",
]

register_builtin_backends()
