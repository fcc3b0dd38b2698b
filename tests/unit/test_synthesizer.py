# tests/unit/test_synthesizer.py
"""Unit tests for key and value synthesis."""

import threading
from dataclasses import replace

import numpy as np
import pytest

from txn_stress_test.core import ConfigurationError, KeySpace, KeyValueSynthesizer, WorkloadConfig
from txn_stress_test.core.synthesizer import scramble_key_index


@pytest.mark.unit
class TestKeySpace:
    """Test the shared key counters."""

    def test_load_range(self):
        keyspace = KeySpace(record_count=3, insert_start=5)

        assert keyspace.load_end == 8
        assert [keyspace.next_load_keynum() for _ in range(4)] == [5, 6, 7, None]

    def test_transaction_inserts_follow_load_range(self):
        keyspace = KeySpace(record_count=10)

        assert keyspace.transaction_insert_sequence.next_int() == 10
        assert keyspace.transaction_insert_sequence.last() == 9


@pytest.mark.unit
class TestKeyNames:
    """Test key derivation."""

    def test_zero_padding(self, keyspace):
        config = WorkloadConfig(keyprefix="user", zeropadding=6)
        synthesizer = KeyValueSynthesizer(config, keyspace)

        assert synthesizer.build_key_name(42) == "user000042"
        assert synthesizer.build_key_name(1234567) == "user1234567"

    def test_default_key_has_no_padding(self, workload_config, keyspace):
        synthesizer = KeyValueSynthesizer(workload_config, keyspace)
        assert synthesizer.build_key_name(5) == "user5"

    @pytest.mark.parametrize("insertorder", ["ordered", "hashed"])
    def test_keys_are_unique(self, keyspace, insertorder):
        config = WorkloadConfig(insertorder=insertorder, zeropadding=4)
        synthesizer = KeyValueSynthesizer(config, keyspace)

        keys = [synthesizer.build_key_name(i) for i in range(20_000)]
        assert len(set(keys)) == len(keys)

    def test_hashed_order_scrambles(self, keyspace):
        config = WorkloadConfig(insertorder="hashed")
        synthesizer = KeyValueSynthesizer(config, keyspace)

        assert synthesizer.build_key_name(1) == f"user{scramble_key_index(1)}"
        assert synthesizer.build_key_name(1) != "user1"

    def test_negative_index_rejected(self, workload_config, keyspace):
        synthesizer = KeyValueSynthesizer(workload_config, keyspace)
        with pytest.raises(ValueError):
            synthesizer.build_key_name(-1)


@pytest.mark.unit
class TestValues:
    """Test field and value generation."""

    def test_field_names(self, workload_config, keyspace):
        synthesizer = KeyValueSynthesizer(workload_config, keyspace)
        assert synthesizer.field_names == ["field0", "field1", "field2"]

    def test_build_values_covers_all_fields(self, workload_config, keyspace, rng):
        synthesizer = KeyValueSynthesizer(workload_config, keyspace, rng)
        values = synthesizer.build_values()

        assert set(values) == {"field0", "field1", "field2"}
        for value in values.values():
            assert isinstance(value, bytes)
            assert len(value) == 8
            assert all(32 <= b <= 126 for b in value)

    def test_build_update_has_one_field(self, workload_config, keyspace, rng):
        synthesizer = KeyValueSynthesizer(workload_config, keyspace, rng)
        update = synthesizer.build_update()

        assert len(update) == 1
        assert next(iter(update)) in synthesizer.field_names

    def test_write_all_fields(self, workload_config, keyspace, rng):
        config = replace(workload_config, writeallfields=True)
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)
        assert len(synthesizer.build_write_values()) == 3

        config = replace(workload_config, writeallfields=False)
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)
        assert len(synthesizer.build_write_values()) == 1

    def test_read_fields(self, workload_config, keyspace, rng):
        synthesizer = KeyValueSynthesizer(replace(workload_config, readallfields=True), keyspace, rng)
        assert synthesizer.choose_read_fields() is None

        synthesizer = KeyValueSynthesizer(replace(workload_config, readallfields=False), keyspace, rng)
        fields = synthesizer.choose_read_fields()
        assert len(fields) == 1
        assert fields <= set(synthesizer.field_names)

    def test_uniform_field_length(self, keyspace, rng):
        config = WorkloadConfig(fieldlength=20, fieldlengthdistribution="uniform")
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)

        lengths = {len(synthesizer.build_value()) for _ in range(500)}
        assert min(lengths) >= 1
        assert max(lengths) <= 20
        assert len(lengths) > 1

    def test_unknown_distribution_rejected(self, keyspace):
        config = WorkloadConfig(requestdistribution="gaussian")
        with pytest.raises(ConfigurationError):
            KeyValueSynthesizer(config, keyspace)


@pytest.mark.unit
class TestKeyChoice:
    """Test key index selection."""

    @pytest.mark.parametrize("insertstart", [0, 1000])
    @pytest.mark.parametrize("distribution", ["uniform", "zipfian", "latest", "hotspot"])
    def test_keys_stay_in_inserted_range(self, distribution, insertstart, rng):
        config = WorkloadConfig(recordcount=100, operationcount=1000, insertstart=insertstart,
                                insertproportion=0.5, requestdistribution=distribution)
        keyspace = KeySpace.from_config(config)
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)

        keynums = [synthesizer.next_keynum() for _ in range(2000)]
        assert min(keynums) >= insertstart
        assert max(keynums) <= insertstart + 99

    @pytest.mark.parametrize("recordcount", [1, 2, 3])
    def test_latest_over_few_records(self, recordcount, rng):
        config = WorkloadConfig(recordcount=recordcount, requestdistribution="latest")
        keyspace = KeySpace.from_config(config)
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)

        keynums = {synthesizer.next_keynum() for _ in range(300)}
        assert keynums <= set(range(recordcount))
        assert recordcount - 1 in keynums

    def test_two_value_zipfian_lengths(self, keyspace, rng):
        config = WorkloadConfig(fieldlength=2, fieldlengthdistribution="zipfian",
                                maxscanlength=2, scanlengthdistribution="zipfian")
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)

        assert {len(synthesizer.build_value()) for _ in range(300)} <= {1, 2}
        assert {synthesizer.next_scan_length() for _ in range(300)} <= {1, 2}

    def test_new_inserts_become_readable_once_acknowledged(self, rng):
        config = WorkloadConfig(recordcount=1, requestdistribution="latest")
        keyspace = KeySpace.from_config(config)
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)

        keynum = synthesizer.next_insert_keynum()
        assert keynum == 1
        assert max(synthesizer.next_keynum() for _ in range(200)) == 0

        synthesizer.acknowledge_insert(keynum)
        assert max(synthesizer.next_keynum() for _ in range(200)) == 1

    def test_no_records_is_configuration_error(self, rng):
        config = WorkloadConfig(recordcount=0)
        keyspace = KeySpace.from_config(config)
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)

        with pytest.raises(ConfigurationError):
            synthesizer.next_keynum()

    def test_insert_start_offsets_keys(self, rng):
        config = WorkloadConfig(recordcount=10, insertstart=1000)
        keyspace = KeySpace.from_config(config)
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)

        keynums = [synthesizer.next_keynum() for _ in range(500)]
        assert min(keynums) >= 1000
        assert max(keynums) <= 1009
        assert synthesizer.next_load_keynum() == 1000

    def test_scan_length_bounds(self, rng, keyspace):
        config = WorkloadConfig(maxscanlength=5)
        synthesizer = KeyValueSynthesizer(config, keyspace, rng)

        assert {synthesizer.next_scan_length() for _ in range(500)} == {1, 2, 3, 4, 5}

    def test_load_keys_shared_between_synthesizers(self, workload_config, keyspace):
        synthesizers = [
            KeyValueSynthesizer(workload_config, keyspace, np.random.default_rng(i))
            for i in range(2)
        ]
        drawn = []
        lock = threading.Lock()

        def load(synthesizer):
            while True:
                keynum = synthesizer.next_load_keynum()
                if keynum is None:
                    return
                with lock:
                    drawn.append(keynum)

        threads = [threading.Thread(target=load, args=(s,)) for s in synthesizers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(drawn) == list(range(10))
