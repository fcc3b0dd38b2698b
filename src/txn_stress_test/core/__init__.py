"""Core components for transactional workload generation."""

from .errors import Status, ConfigurationError, UnreachableOperationError
from .generators import (
    WeightedChoice,
    IntegerGenerator,
    ConstantIntegerGenerator,
    CounterGenerator,
    AcknowledgedCounterGenerator,
    UniformIntegerGenerator,
    ZipfianGenerator,
    ScrambledZipfianGenerator,
    SkewedLatestGenerator,
    HotspotIntegerGenerator,
)
from .synthesizer import KeySpace, KeyValueSynthesizer
from .metrics import (
    MeasurementSink,
    Measurements,
    OperationMetrics,
    elapsed_us,
)
from .config import (
    Config,
    ConfigValidator,
    WorkloadConfig,
    ClientConfig,
    RedisConfig,
    MonitoringConfig,
    OutputConfig,
)

__all__ = [
    # Errors
    "Status",
    "ConfigurationError",
    "UnreachableOperationError",

    # Generators
    "WeightedChoice",
    "IntegerGenerator",
    "ConstantIntegerGenerator",
    "CounterGenerator",
    "AcknowledgedCounterGenerator",
    "UniformIntegerGenerator",
    "ZipfianGenerator",
    "ScrambledZipfianGenerator",
    "SkewedLatestGenerator",
    "HotspotIntegerGenerator",

    # Synthesis
    "KeySpace",
    "KeyValueSynthesizer",

    # Metrics
    "MeasurementSink",
    "Measurements",
    "OperationMetrics",
    "elapsed_us",

    # Configuration
    "Config",
    "ConfigValidator",
    "WorkloadConfig",
    "ClientConfig",
    "RedisConfig",
    "MonitoringConfig",
    "OutputConfig",
]
