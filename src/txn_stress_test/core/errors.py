# src/txn_stress_test/core/errors.py
"""Status codes and error types shared by workloads and backends."""

from __future__ import annotations

from enum import IntEnum


class Status(IntEnum):
    """Result code returned by every storage backend operation.

    Zero is success. Every other value is a failure of the logical
    operation; workloads treat all of them alike except for reporting.
    """
    OK = 0
    ERROR = -1
    NOT_FOUND = -3
    SINGLETON_WHILE_IN_TRANSACTION = -4
    CONFLICT = -5

    @property
    def is_ok(self) -> bool:
        """Whether this status means success."""
        return self == Status.OK

    @classmethod
    def coerce(cls, code: int) -> "Status":
        """Map a raw integer code onto a Status, unknown codes become ERROR."""
        try:
            return cls(code)
        except ValueError:
            return cls.ERROR


class ConfigurationError(ValueError):
    """Invalid configuration detected while initializing a workload."""


class UnreachableOperationError(RuntimeError):
    """A weighted choice produced a label with no matching branch.

    This is never a runtime or environment failure: it means the choice
    tables were built inconsistently, and the benchmark must stop.
    """
