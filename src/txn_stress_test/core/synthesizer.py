# src/txn_stress_test/core/synthesizer.py
"""Key, field and value synthesis for generated operations."""

from __future__ import annotations

from typing import Dict, List, Optional, Set
import logging

import numpy as np

from .config import WorkloadConfig
from .errors import ConfigurationError
from .generators import (
    AcknowledgedCounterGenerator,
    ConstantIntegerGenerator,
    CounterGenerator,
    HotspotIntegerGenerator,
    IntegerGenerator,
    ScrambledZipfianGenerator,
    SkewedLatestGenerator,
    UniformIntegerGenerator,
    ZipfianGenerator,
)

logger = logging.getLogger(__name__)

_MASK_64 = (1 << 64) - 1

# Printable ASCII, space through tilde
_VALUE_BYTE_LOW = 32
_VALUE_BYTE_HIGH = 127


def scramble_key_index(index: int) -> int:
    """Bijective 64-bit mix (splitmix64 finalizer) used for hashed insert order."""
    z = (index + 0x9E3779B97F4A7C15) & _MASK_64
    z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & _MASK_64
    z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & _MASK_64
    return z ^ (z >> 31)


class KeySpace:
    """
    Key counters shared by every client thread of one run.

    ``key_sequence`` numbers the keys written by the load phase.
    ``transaction_insert_sequence`` numbers keys inserted during the
    measured phase; its acknowledged ``last()`` bounds which keys reads
    and updates may target.
    """

    def __init__(self, record_count: int, insert_start: int = 0):
        self.record_count = record_count
        self.insert_start = insert_start
        self.key_sequence = CounterGenerator(insert_start)
        self.transaction_insert_sequence = AcknowledgedCounterGenerator(insert_start + record_count)

    @classmethod
    def from_config(cls, config: WorkloadConfig) -> "KeySpace":
        return cls(config.recordcount, config.insertstart)

    @property
    def load_end(self) -> int:
        """First key index past the load range."""
        return self.insert_start + self.record_count

    def next_load_keynum(self) -> Optional[int]:
        """Next key index of the load phase, or None once the range is used up."""
        keynum = self.key_sequence.next_int()
        return keynum if keynum < self.load_end else None


class KeyValueSynthesizer:
    """Builds record keys, field sets and value payloads for one client thread."""

    def __init__(self,
                 config: WorkloadConfig,
                 keyspace: KeySpace,
                 random_source: Optional[np.random.Generator] = None):
        """
        Initialize the synthesizer.

        Args:
            config: Workload configuration
            keyspace: Counters shared with the other client threads
            random_source: This thread's private random source
        """
        self.config = config
        self.keyspace = keyspace
        self._rng = random_source if random_source is not None else np.random.default_rng()

        self.key_prefix = config.keyprefix
        self.zero_padding = config.zeropadding
        self.ordered_inserts = config.insertorder == "ordered"
        self.read_all_fields = config.readallfields
        self.write_all_fields = config.writeallfields
        self.field_names: List[str] = [f"{config.fieldnameprefix}{i}" for i in range(config.fieldcount)]

        self.field_chooser = UniformIntegerGenerator(0, config.fieldcount - 1, self._rng)
        self.field_length_generator = self._build_field_length_generator()
        self.key_chooser = self._build_key_chooser()
        self.scan_length_chooser = self._build_scan_length_chooser()

    def _build_field_length_generator(self) -> IntegerGenerator:
        distribution = self.config.fieldlengthdistribution
        if distribution == "constant":
            return ConstantIntegerGenerator(self.config.fieldlength)
        if distribution == "uniform":
            return UniformIntegerGenerator(1, self.config.fieldlength, self._rng)
        if distribution == "zipfian":
            return ZipfianGenerator(1, self.config.fieldlength, random_source=self._rng)
        raise ConfigurationError(f"Unknown field length distribution: {distribution}")

    def _build_key_chooser(self) -> IntegerGenerator:
        distribution = self.config.requestdistribution
        start = self.keyspace.insert_start
        last_key = start + max(self.keyspace.record_count, 1) - 1

        if distribution == "uniform":
            return UniformIntegerGenerator(start, last_key, self._rng)

        if distribution == "zipfian":
            # Leave room for keys inserted while the run is going
            expected_new_keys = int(self.config.operationcount * self.config.insertproportion * 2.0)
            return ScrambledZipfianGenerator(start, last_key + expected_new_keys,
                                             self.config.zipfianconstant, self._rng)

        if distribution == "latest":
            return SkewedLatestGenerator(self.keyspace.transaction_insert_sequence, self._rng,
                                         lower_bound=start)

        if distribution == "hotspot":
            return HotspotIntegerGenerator(start, last_key,
                                           self.config.hotspotdatafraction,
                                           self.config.hotspotopnfraction,
                                           self._rng)

        raise ConfigurationError(f"Unknown request distribution: {distribution}")

    def _build_scan_length_chooser(self) -> IntegerGenerator:
        if self.config.scanlengthdistribution == "zipfian":
            return ZipfianGenerator(1, self.config.maxscanlength, random_source=self._rng)
        return UniformIntegerGenerator(1, self.config.maxscanlength, self._rng)

    def build_key_name(self, index: int) -> str:
        """Derive the record key for a key index."""
        if index < 0:
            raise ValueError(f"Key index must be non-negative: {index}")
        if not self.ordered_inserts:
            index = scramble_key_index(index)
        return f"{self.key_prefix}{str(index).zfill(self.zero_padding)}"

    def build_value(self) -> bytes:
        """Random printable ASCII payload with a length from the field length generator."""
        length = self.field_length_generator.next_int()
        return self._rng.integers(_VALUE_BYTE_LOW, _VALUE_BYTE_HIGH, size=length, dtype=np.uint8).tobytes()

    def build_values(self) -> Dict[str, bytes]:
        """New data for every field."""
        return {name: self.build_value() for name in self.field_names}

    def build_update(self) -> Dict[str, bytes]:
        """New data for one uniformly chosen field."""
        return {self.next_field_name(): self.build_value()}

    def build_write_values(self) -> Dict[str, bytes]:
        """Payload for an update, honoring ``writeallfields``."""
        return self.build_values() if self.write_all_fields else self.build_update()

    def next_field_name(self) -> str:
        return self.field_names[self.field_chooser.next_int()]

    def choose_read_fields(self) -> Optional[Set[str]]:
        """Fields to read; None means all fields."""
        if self.read_all_fields:
            return None
        return {self.next_field_name()}

    def next_keynum(self) -> int:
        """Draw a key index among keys known to be inserted."""
        limit = self.keyspace.transaction_insert_sequence.last()
        if limit < self.keyspace.insert_start:
            raise ConfigurationError("No records are known to exist, load data before running transactions")

        while True:
            keynum = self.key_chooser.next_int()
            if keynum <= limit:
                return keynum
            # Refresh; other threads may have acknowledged more inserts meanwhile
            limit = self.keyspace.transaction_insert_sequence.last()

    def next_insert_keynum(self) -> int:
        """Key index for an insert issued during the measured phase."""
        return self.keyspace.transaction_insert_sequence.next_int()

    def acknowledge_insert(self, keynum: int) -> None:
        self.keyspace.transaction_insert_sequence.acknowledge(keynum)

    def next_load_keynum(self) -> Optional[int]:
        """Key index for the next insert of the load phase, None when all are taken."""
        return self.keyspace.next_load_keynum()

    def next_scan_length(self) -> int:
        return self.scan_length_chooser.next_int()
