# src/txn_stress_test/core/generators.py
"""
Random generators used to shape a workload.

This module provides:
- WeightedChoice, which picks an operation label according to configured
  proportions (the operation mix)
- Integer generators (counter, uniform, zipfian, latest, hotspot) used for
  key popularity, field lengths and scan lengths

Every generator draws from a ``numpy.random.Generator`` supplied by its
owner, so a seeded run replays exactly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Set, Tuple
import logging
import math
import threading

import numpy as np

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _default_rng(random_source: Optional[np.random.Generator]) -> np.random.Generator:
    return random_source if random_source is not None else np.random.default_rng()


class WeightedChoice:
    """
    Draws one of several labels with probability proportional to its weight.

    Weights do not have to sum to one: the probability of a label is its
    weight divided by the sum of all weights added so far. A label added
    with weight 0 is never returned.
    """

    def __init__(self, random_source: Optional[np.random.Generator] = None):
        """
        Initialize an empty choice table.

        Args:
            random_source: Uniform random source (seed it for reproducible draws)
        """
        self._rng = _default_rng(random_source)
        self._values: List[Tuple[float, str]] = []
        self._total = 0.0
        self._last: Optional[str] = None

    def add_value(self, weight: float, label: str) -> None:
        """Append a weighted label."""
        weight = float(weight)
        if math.isnan(weight) or math.isinf(weight) or weight < 0:
            raise ConfigurationError(f"Weight for '{label}' must be a finite non-negative number: {weight}")

        self._values.append((weight, label))
        self._total += weight

    @property
    def labels(self) -> List[str]:
        """Labels in insertion order."""
        return [label for _, label in self._values]

    @property
    def total_weight(self) -> float:
        """Sum of all weights added so far."""
        return self._total

    def next(self) -> str:
        """Draw a label using a single uniform draw over the cumulative weights."""
        if self._total <= 0:
            raise ConfigurationError(
                f"Weighted choice over {self.labels} has zero total weight"
            )

        point = self._rng.random() * self._total
        cumulative = 0.0
        for weight, label in self._values:
            cumulative += weight
            if point < cumulative:
                self._last = label
                return label

        # point can round up to the total; the last positive weight owns it
        for weight, label in reversed(self._values):
            if weight > 0:
                self._last = label
                return label

        raise ConfigurationError(f"Weighted choice over {self.labels} has no positive weight")

    def last(self) -> Optional[str]:
        """Label returned by the previous draw."""
        return self._last


class IntegerGenerator(ABC):
    """Produces a stream of integers."""

    def __init__(self):
        self._last: Optional[int] = None

    @abstractmethod
    def next_int(self) -> int:
        """Return the next value."""
        pass

    def last(self) -> Optional[int]:
        """Return the previously generated value."""
        return self._last

    def _set_last(self, value: int) -> int:
        self._last = value
        return value


class ConstantIntegerGenerator(IntegerGenerator):
    """Always returns the same value."""

    def __init__(self, value: int):
        super().__init__()
        self.value = value

    def next_int(self) -> int:
        return self._set_last(self.value)


class CounterGenerator(IntegerGenerator):
    """Thread-safe counter shared by every client thread of a run."""

    def __init__(self, start: int):
        super().__init__()
        self._counter = start
        self._lock = threading.Lock()

    def next_int(self) -> int:
        with self._lock:
            value = self._counter
            self._counter += 1
        return value

    def last(self) -> int:
        """Return the most recently issued value (start - 1 before any draw)."""
        with self._lock:
            return self._counter - 1


class AcknowledgedCounterGenerator(CounterGenerator):
    """
    Counter whose ``last()`` only advances over acknowledged values.

    Inserting threads acknowledge each key once its insert finished, so
    readers bounded by ``last()`` never chase a key that is still being
    written by another thread.
    """

    def __init__(self, start: int):
        super().__init__(start)
        self._limit = start - 1
        self._pending: Set[int] = set()
        self._ack_lock = threading.Lock()

    def acknowledge(self, value: int) -> None:
        """Mark a previously issued value as complete."""
        with self._ack_lock:
            self._pending.add(value)
            while self._limit + 1 in self._pending:
                self._pending.discard(self._limit + 1)
                self._limit += 1

    def last(self) -> int:
        with self._ack_lock:
            return self._limit


class UniformIntegerGenerator(IntegerGenerator):
    """Uniform integers in ``[lower_bound, upper_bound]``."""

    def __init__(self,
                 lower_bound: int,
                 upper_bound: int,
                 random_source: Optional[np.random.Generator] = None):
        super().__init__()
        if upper_bound < lower_bound:
            raise ConfigurationError(f"Empty uniform range [{lower_bound}, {upper_bound}]")
        self.lower_bound = lower_bound
        self.upper_bound = upper_bound
        self._rng = _default_rng(random_source)

    def next_int(self) -> int:
        return self._set_last(int(self._rng.integers(self.lower_bound, self.upper_bound + 1)))


def zeta(n: int, theta: float, start: int = 0, initial_sum: float = 0.0) -> float:
    """
    Compute the generalized harmonic number sum(1 / i**theta) for i in (start, n].

    Passing the previous result as ``initial_sum`` extends it incrementally.
    """
    total = initial_sum
    chunk = 1_000_000
    for lo in range(start + 1, n + 1, chunk):
        hi = min(lo + chunk, n + 1)
        total += float(np.sum(1.0 / np.power(np.arange(lo, hi, dtype=np.float64), theta)))
    return total


class ZipfianGenerator(IntegerGenerator):
    """
    Zipfian integers in ``[min_value, max_value]``; smaller values are popular.

    Uses the rejection-free algorithm of Gray et al., "Quickly Generating
    Billion-Record Synthetic Databases". The item count may grow after
    construction (``next_long(item_count)``); zeta is then extended
    incrementally.
    """

    ZIPFIAN_CONSTANT = 0.99

    def __init__(self,
                 min_value: int,
                 max_value: int,
                 zipfian_constant: float = ZIPFIAN_CONSTANT,
                 random_source: Optional[np.random.Generator] = None,
                 zetan: Optional[float] = None):
        super().__init__()
        if max_value < min_value:
            raise ConfigurationError(f"Empty zipfian range [{min_value}, {max_value}]")
        if not 0 < zipfian_constant < 1:
            raise ConfigurationError(f"Zipfian constant must be in (0, 1): {zipfian_constant}")

        self._rng = _default_rng(random_source)
        self.base = min_value
        self.items = max_value - min_value + 1
        self.theta = zipfian_constant

        self._zeta2theta = zeta(2, self.theta)
        self._alpha = 1.0 / (1.0 - self.theta)
        self._zetan = zetan if zetan is not None else zeta(self.items, self.theta)
        self._count_for_zeta = self.items
        self._eta = self._compute_eta(self.items)

    def _compute_eta(self, item_count: int) -> float:
        # Only draws past the first two items use eta
        if item_count < 3 or self._zetan == self._zeta2theta:
            return 0.0
        return (1 - math.pow(2.0 / item_count, 1 - self.theta)) / (1 - self._zeta2theta / self._zetan)

    def next_long(self, item_count: int) -> int:
        """Draw from the first ``item_count`` items."""
        if item_count != self._count_for_zeta:
            if item_count > self._count_for_zeta:
                self._zetan = zeta(item_count, self.theta, self._count_for_zeta, self._zetan)
            else:
                logger.debug(f"Recomputing zipfian zeta for a shrinking item count ({item_count})")
                self._zetan = zeta(item_count, self.theta)
            self._count_for_zeta = item_count
            self._eta = self._compute_eta(item_count)

        u = self._rng.random()
        uz = u * self._zetan

        if uz < 1.0:
            return self._set_last(self.base)

        if uz < 1.0 + math.pow(0.5, self.theta):
            return self._set_last(self.base + 1)

        value = self.base + int(item_count * math.pow(self._eta * u - self._eta + 1, self._alpha))
        return self._set_last(min(value, self.base + item_count - 1))

    def next_int(self) -> int:
        return self.next_long(self.items)


_FNV_OFFSET_BASIS_64 = 0xCBF29CE484222325
_FNV_PRIME_64 = 0x100000001B3
_MASK_64 = (1 << 64) - 1


def fnv_hash64(value: int) -> int:
    """FNV-1a 64-bit hash over the eight little-endian bytes of ``value``."""
    h = _FNV_OFFSET_BASIS_64
    for _ in range(8):
        h ^= value & 0xFF
        h = (h * _FNV_PRIME_64) & _MASK_64
        value >>= 8
    return h


class ScrambledZipfianGenerator(IntegerGenerator):
    """
    Zipfian popularity spread over the whole range instead of clustered at
    its head: draws from a large zipfian space and hashes into the range.
    """

    ITEM_COUNT = 10_000_000_000
    # zeta(ITEM_COUNT, 0.99), too expensive to compute at startup
    ZETAN = 26.46902820178302

    def __init__(self,
                 min_value: int,
                 max_value: int,
                 zipfian_constant: float = ZipfianGenerator.ZIPFIAN_CONSTANT,
                 random_source: Optional[np.random.Generator] = None):
        super().__init__()
        if max_value < min_value:
            raise ConfigurationError(f"Empty zipfian range [{min_value}, {max_value}]")

        self.min_value = min_value
        self.item_count = max_value - min_value + 1

        if zipfian_constant == ZipfianGenerator.ZIPFIAN_CONSTANT:
            self._gen = ZipfianGenerator(0, self.ITEM_COUNT - 1, zipfian_constant,
                                         random_source, zetan=self.ZETAN)
        else:
            self._gen = ZipfianGenerator(0, self.item_count - 1, zipfian_constant, random_source)

    def next_int(self) -> int:
        value = self._gen.next_int()
        return self._set_last(self.min_value + fnv_hash64(value) % self.item_count)


class SkewedLatestGenerator(IntegerGenerator):
    """
    Zipfian popularity anchored at the most recently inserted key.

    Draws stay within ``[lower_bound, basis.last()]``.
    """

    def __init__(self,
                 basis: CounterGenerator,
                 random_source: Optional[np.random.Generator] = None,
                 lower_bound: int = 0):
        super().__init__()
        self._basis = basis
        self.lower_bound = lower_bound
        self._zipfian = ZipfianGenerator(0, self._item_count() - 1, random_source=random_source)

    def _item_count(self) -> int:
        return max(self._basis.last() - self.lower_bound + 1, 1)

    def next_int(self) -> int:
        newest = self._basis.last()
        offset = self._zipfian.next_long(self._item_count())
        return self._set_last(max(newest - offset, self.lower_bound))


class HotspotIntegerGenerator(IntegerGenerator):
    """
    A fraction of the operations target a fraction of the range (the hot set);
    both parts are uniform inside.
    """

    def __init__(self,
                 lower_bound: int,
                 upper_bound: int,
                 hot_set_fraction: float,
                 hot_operation_fraction: float,
                 random_source: Optional[np.random.Generator] = None):
        super().__init__()
        if upper_bound < lower_bound:
            raise ConfigurationError(f"Empty hotspot range [{lower_bound}, {upper_bound}]")
        if not 0.0 <= hot_set_fraction <= 1.0:
            raise ConfigurationError(f"Hot set fraction must be in [0, 1]: {hot_set_fraction}")
        if not 0.0 <= hot_operation_fraction <= 1.0:
            raise ConfigurationError(f"Hot operation fraction must be in [0, 1]: {hot_operation_fraction}")

        self._rng = _default_rng(random_source)
        self.lower_bound = lower_bound
        interval = upper_bound - lower_bound + 1
        self.hot_interval = int(interval * hot_set_fraction)
        self.cold_interval = interval - self.hot_interval
        self.hot_operation_fraction = hot_operation_fraction

    def next_int(self) -> int:
        hot = self._rng.random() < self.hot_operation_fraction
        if (hot and self.hot_interval > 0) or self.cold_interval == 0:
            value = self.lower_bound + int(self._rng.integers(self.hot_interval))
        else:
            value = self.lower_bound + self.hot_interval + int(self._rng.integers(self.cold_interval))
        return self._set_last(value)
