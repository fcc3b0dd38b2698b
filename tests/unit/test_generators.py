# tests/unit/test_generators.py
"""Unit tests for weighted choice and integer generators."""

import threading

import numpy as np
import pytest

from txn_stress_test.core import (
    AcknowledgedCounterGenerator,
    ConfigurationError,
    ConstantIntegerGenerator,
    CounterGenerator,
    HotspotIntegerGenerator,
    ScrambledZipfianGenerator,
    SkewedLatestGenerator,
    UniformIntegerGenerator,
    WeightedChoice,
    ZipfianGenerator,
)
from txn_stress_test.core.generators import fnv_hash64, zeta


@pytest.mark.unit
class TestWeightedChoice:
    """Test weighted label selection."""

    def test_frequencies_converge_to_weights(self):
        """Chi-square goodness of fit over 20,000 draws."""
        choice = WeightedChoice(np.random.default_rng(12345))
        weights = {"A": 1.0, "B": 2.0, "C": 7.0}
        for label, weight in weights.items():
            choice.add_value(weight, label)

        n = 20_000
        draws = [choice.next() for _ in range(n)]

        total = sum(weights.values())
        observed = np.array([draws.count(label) for label in weights])
        expected = np.array([n * weight / total for weight in weights.values()])
        chi_square = float(np.sum((observed - expected) ** 2 / expected))

        # 99.9% critical value for two degrees of freedom
        assert chi_square < 13.82

    def test_weights_need_not_sum_to_one(self):
        choice = WeightedChoice(np.random.default_rng(1))
        choice.add_value(30, "X")
        choice.add_value(10, "Y")

        draws = [choice.next() for _ in range(10_000)]
        assert 0.72 < draws.count("X") / len(draws) < 0.78

    def test_zero_weight_never_returned(self):
        choice = WeightedChoice(np.random.default_rng(3))
        choice.add_value(0.0, "NEVER")
        choice.add_value(1.0, "ALWAYS")
        choice.add_value(0.0, "ALSO_NEVER")

        assert {choice.next() for _ in range(10_000)} == {"ALWAYS"}

    def test_zero_total_weight_is_configuration_error(self):
        choice = WeightedChoice(np.random.default_rng(3))
        choice.add_value(0.0, "A")

        with pytest.raises(ConfigurationError):
            choice.next()

    def test_empty_choice_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            WeightedChoice().next()

    @pytest.mark.parametrize("weight", [-0.1, float("nan"), float("inf")])
    def test_invalid_weight_rejected(self, weight):
        with pytest.raises(ConfigurationError):
            WeightedChoice().add_value(weight, "A")

    def test_seeded_draws_are_reproducible(self):
        def sequence(seed):
            choice = WeightedChoice(np.random.default_rng(seed))
            choice.add_value(0.5, "READ")
            choice.add_value(0.3, "UPDATE")
            choice.add_value(0.2, "SCAN")
            return [choice.next() for _ in range(200)]

        assert sequence(99) == sequence(99)
        assert sequence(99) != sequence(100)

    def test_last_tracks_previous_draw(self):
        choice = WeightedChoice(np.random.default_rng(0))
        choice.add_value(1.0, "ONLY")

        assert choice.last() is None
        choice.next()
        assert choice.last() == "ONLY"

    def test_labels_and_total(self):
        choice = WeightedChoice()
        choice.add_value(0.25, "A")
        choice.add_value(0.75, "B")

        assert choice.labels == ["A", "B"]
        assert choice.total_weight == pytest.approx(1.0)


@pytest.mark.unit
class TestCounters:
    """Test shared counters."""

    def test_counter_sequence(self):
        counter = CounterGenerator(5)
        assert counter.last() == 4
        assert [counter.next_int() for _ in range(3)] == [5, 6, 7]
        assert counter.last() == 7

    def test_counter_unique_across_threads(self):
        counter = CounterGenerator(0)
        seen = []
        lock = threading.Lock()

        def draw():
            values = [counter.next_int() for _ in range(1000)]
            with lock:
                seen.extend(values)

        threads = [threading.Thread(target=draw) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(seen) == list(range(4000))

    def test_acknowledged_counter_advances_over_contiguous_acks(self):
        counter = AcknowledgedCounterGenerator(10)
        issued = [counter.next_int() for _ in range(3)]
        assert issued == [10, 11, 12]
        assert counter.last() == 9

        counter.acknowledge(11)
        assert counter.last() == 9

        counter.acknowledge(10)
        assert counter.last() == 11

        counter.acknowledge(12)
        assert counter.last() == 12

    def test_constant(self):
        generator = ConstantIntegerGenerator(100)
        assert {generator.next_int() for _ in range(10)} == {100}
        assert generator.last() == 100


@pytest.mark.unit
class TestDistributions:
    """Test integer distributions."""

    def test_uniform_bounds(self, rng):
        generator = UniformIntegerGenerator(3, 7, rng)
        values = {generator.next_int() for _ in range(2000)}
        assert values == {3, 4, 5, 6, 7}

    def test_uniform_empty_range_rejected(self):
        with pytest.raises(ConfigurationError):
            UniformIntegerGenerator(5, 4)

    def test_zeta_incremental_matches_direct(self):
        direct = zeta(5000, 0.99)
        partial = zeta(2000, 0.99)
        assert zeta(5000, 0.99, 2000, partial) == pytest.approx(direct)

    def test_zipfian_bounds_and_skew(self, rng):
        generator = ZipfianGenerator(0, 99, random_source=rng)
        values = [generator.next_int() for _ in range(20_000)]

        assert min(values) >= 0
        assert max(values) <= 99
        assert values.count(0) > values.count(50) * 5

    def test_zipfian_growing_item_count(self, rng):
        generator = ZipfianGenerator(0, 9, random_source=rng)
        values = [generator.next_long(50) for _ in range(5000)]
        assert max(values) <= 49
        assert max(values) > 9

    def test_zipfian_constant_must_be_below_one(self):
        with pytest.raises(ConfigurationError):
            ZipfianGenerator(0, 10, zipfian_constant=1.0)

    def test_scrambled_zipfian_bounds(self, rng):
        generator = ScrambledZipfianGenerator(100, 199, random_source=rng)
        values = [generator.next_int() for _ in range(5000)]
        assert min(values) >= 100
        assert max(values) <= 199
        # Skew survives the scramble
        most_common = max(set(values), key=values.count)
        assert values.count(most_common) > 5000 / 100

    def test_fnv_hash64_is_stable(self):
        assert fnv_hash64(0) == fnv_hash64(0)
        assert fnv_hash64(1) != fnv_hash64(2)
        assert 0 <= fnv_hash64(123456789) < 2 ** 64

    def test_skewed_latest_prefers_newest(self, rng):
        basis = CounterGenerator(0)
        for _ in range(100):
            basis.next_int()

        generator = SkewedLatestGenerator(basis, rng)
        values = [generator.next_int() for _ in range(5000)]

        assert max(values) <= basis.last()
        assert min(values) >= 0
        assert values.count(99) > values.count(10)

    def test_skewed_latest_respects_lower_bound(self, rng):
        basis = CounterGenerator(1000)
        for _ in range(100):
            basis.next_int()

        generator = SkewedLatestGenerator(basis, rng, lower_bound=1000)
        values = [generator.next_int() for _ in range(5000)]

        assert min(values) >= 1000
        assert max(values) <= 1099
        assert values.count(1099) > values.count(1010)

    @pytest.mark.parametrize("items", [1, 2, 3])
    def test_tiny_zipfian_ranges(self, items, rng):
        generator = ZipfianGenerator(0, items - 1, random_source=rng)
        values = {generator.next_int() for _ in range(500)}

        assert values <= set(range(items))
        assert 0 in values

    def test_zipfian_shrinks_to_two_items(self, rng):
        generator = ZipfianGenerator(0, 99, random_source=rng)
        generator.next_int()

        assert {generator.next_long(2) for _ in range(200)} <= {0, 1}

    @pytest.mark.parametrize("items", [1, 2, 3])
    def test_tiny_skewed_latest_ranges(self, items, rng):
        basis = CounterGenerator(0)
        for _ in range(items):
            basis.next_int()

        generator = SkewedLatestGenerator(basis, rng)
        values = {generator.next_int() for _ in range(500)}

        assert values <= set(range(items))
        assert items - 1 in values

    def test_hotspot_fraction(self, rng):
        generator = HotspotIntegerGenerator(0, 99, 0.2, 0.8, rng)
        values = [generator.next_int() for _ in range(20_000)]

        hot = sum(1 for value in values if value < 20) / len(values)
        assert 0.78 < hot < 0.82
        assert max(values) <= 99

    def test_hotspot_fractions_validated(self):
        with pytest.raises(ConfigurationError):
            HotspotIntegerGenerator(0, 9, 1.5, 0.5)
