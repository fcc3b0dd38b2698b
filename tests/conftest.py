# tests/conftest.py
"""Pytest configuration and shared fixtures."""

import pytest
import numpy as np
import yaml

from tests.mocks import RecordingBackend, RecordingMeasurements

from txn_stress_test.core import (
    Config,
    KeySpace,
    WorkloadConfig,
)
from txn_stress_test.db import MemoryStore


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "integration: tests running whole phases")
    config.addinivalue_line("markers", "slow: long running tests")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep configuration environment variables of the host out of the tests."""
    for name in ("REDIS_HOST", "REDIS_PORT", "REDIS_PASSWORD", "TST_OUTPUT_DIR",
                 "TST_LOG_LEVEL", "TST_THREADS", "TST_SEED", "TST_BACKEND"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def rng():
    """Seeded random source for reproducible draws."""
    return np.random.default_rng(42)


@pytest.fixture
def workload_config():
    """Small workload configuration."""
    return WorkloadConfig(
        recordcount=10,
        operationcount=100,
        fieldcount=3,
        fieldlength=8,
    )


@pytest.fixture
def keyspace(workload_config):
    """Key counters for the small workload configuration."""
    return KeySpace.from_config(workload_config)


@pytest.fixture
def measurements():
    """Sink recording every sample."""
    return RecordingMeasurements()


@pytest.fixture
def recording_backend():
    """Backend fake recording every call."""
    return RecordingBackend()


@pytest.fixture
def memory_store():
    """Fresh in-memory store, independent of the process-wide default."""
    return MemoryStore()


@pytest.fixture
def config_file(tmp_path):
    """Create a temporary configuration file."""
    config_path = tmp_path / "test_config.yaml"

    config_data = {
        "workload": {
            "recordcount": 50,
            "operationcount": 200,
            "fieldcount": 4,
            "fieldlength": 16,
            "singletonproportion": 0.5,
            "readproportion": 0.5,
            "updateproportion": 0.5,
        },
        "client": {
            "threads": 2,
            "seed": 7,
            "backend": "memory",
            "workload": "singleton",
        },
        "redis": {
            "host": "test-host",
            "port": 7379,
        },
        "output": {
            "summary_path": str(tmp_path / "output" / "summary.csv"),
            "log_level": "DEBUG",
        },
    }

    with open(config_path, 'w') as f:
        yaml.dump(config_data, f)

    return config_path


@pytest.fixture
def small_config(config_file):
    """Loaded configuration from the temporary file."""
    return Config(config_path=config_file)
