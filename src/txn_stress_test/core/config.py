# src/txn_stress_test/core/config.py
"""Configuration parsing and validation."""

from __future__ import annotations

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, fields, asdict, replace
import logging
import os

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


REQUEST_DISTRIBUTIONS = ("uniform", "zipfian", "latest", "hotspot")
LENGTH_DISTRIBUTIONS = ("constant", "uniform", "zipfian")
INSERT_ORDERS = ("ordered", "hashed")


@dataclass
class WorkloadConfig:
    """
    Workload properties.

    Field names follow the classic property names (``readproportion``,
    ``singletonproportion`` ...) so property files and ``-p`` overrides
    map onto them directly.
    """
    table: str = "usertable"
    recordcount: int = 1000
    operationcount: int = 1000
    insertstart: int = 0

    fieldcount: int = 10
    fieldlength: int = 100
    fieldlengthdistribution: str = "constant"
    fieldnameprefix: str = "field"
    keyprefix: str = "user"
    zeropadding: int = 1
    insertorder: str = "ordered"

    readallfields: bool = True
    writeallfields: bool = False

    readproportion: float = 0.95
    updateproportion: float = 0.05
    insertproportion: float = 0.0
    scanproportion: float = 0.0
    readmodifywriteproportion: float = 0.0

    requestdistribution: str = "uniform"
    zipfianconstant: float = 0.99
    hotspotdatafraction: float = 0.2
    hotspotopnfraction: float = 0.8
    maxscanlength: int = 1000
    scanlengthdistribution: str = "uniform"

    singletonproportion: float = 0.5
    truesingleton: bool = True
    batchsize: int = 1

    def validate(self) -> None:
        """Validate workload configuration."""
        if not self.table:
            raise ConfigurationError("table cannot be empty")

        if self.recordcount < 0:
            raise ConfigurationError(f"recordcount must be non-negative: {self.recordcount}")

        if self.operationcount < 0:
            raise ConfigurationError(f"operationcount must be non-negative: {self.operationcount}")

        if self.insertstart < 0:
            raise ConfigurationError(f"insertstart must be non-negative: {self.insertstart}")

        if self.fieldcount <= 0:
            raise ConfigurationError(f"fieldcount must be positive: {self.fieldcount}")

        if self.fieldlength <= 0:
            raise ConfigurationError(f"fieldlength must be positive: {self.fieldlength}")

        if self.zeropadding < 1:
            raise ConfigurationError(f"zeropadding must be at least 1: {self.zeropadding}")

        if self.batchsize <= 0:
            raise ConfigurationError(f"batchsize must be positive: {self.batchsize}")

        if self.maxscanlength <= 0:
            raise ConfigurationError(f"maxscanlength must be positive: {self.maxscanlength}")

        if self.requestdistribution not in REQUEST_DISTRIBUTIONS:
            raise ConfigurationError(f"Invalid requestdistribution: {self.requestdistribution}")

        if self.fieldlengthdistribution not in LENGTH_DISTRIBUTIONS:
            raise ConfigurationError(f"Invalid fieldlengthdistribution: {self.fieldlengthdistribution}")

        if self.scanlengthdistribution not in ("uniform", "zipfian"):
            raise ConfigurationError(f"Invalid scanlengthdistribution: {self.scanlengthdistribution}")

        if self.insertorder not in INSERT_ORDERS:
            raise ConfigurationError(f"Invalid insertorder: {self.insertorder}")

        for name in ("readproportion", "updateproportion", "insertproportion",
                     "scanproportion", "readmodifywriteproportion", "singletonproportion",
                     "hotspotdatafraction", "hotspotopnfraction"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be between 0.0 and 1.0: {value}")

        if self.transaction_mix_total() <= 0:
            raise ConfigurationError("Operation proportions sum to zero, nothing to run")

    def transaction_mix_total(self) -> float:
        """Sum of the multi-statement operation proportions."""
        return (self.readproportion + self.updateproportion + self.insertproportion
                + self.scanproportion + self.readmodifywriteproportion)


@dataclass
class ClientConfig:
    """Configuration of the client threads driving a run."""
    threads: int = 1
    target: float = 0.0  # ops/sec across all threads, 0 = unthrottled
    seed: Optional[int] = None
    backend: str = "memory"
    workload: str = "singleton"
    max_execution_time: float = 0.0  # seconds, 0 = until operationcount

    def validate(self) -> None:
        """Validate client configuration."""
        if self.threads <= 0:
            raise ConfigurationError(f"threads must be positive: {self.threads}")

        if self.target < 0:
            raise ConfigurationError(f"target must be non-negative: {self.target}")

        if self.max_execution_time < 0:
            raise ConfigurationError(f"max_execution_time must be non-negative: {self.max_execution_time}")

        if not self.backend:
            raise ConfigurationError("backend cannot be empty")

        if not self.workload:
            raise ConfigurationError("workload cannot be empty")


@dataclass
class RedisConfig:
    """Redis connection configuration."""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    max_connections: int = 100
    socket_timeout: float = 30.0
    socket_connect_timeout: float = 10.0

    def validate(self) -> None:
        """Validate Redis configuration."""
        if not self.host:
            raise ConfigurationError("Redis host cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ConfigurationError(f"Invalid port number: {self.port}")

        if self.db < 0:
            raise ConfigurationError(f"Database number must be non-negative: {self.db}")

        if self.max_connections <= 0:
            raise ConfigurationError(f"max_connections must be positive: {self.max_connections}")


@dataclass
class MonitoringConfig:
    """Measurement export configuration."""
    prometheus_pushgateway: Optional[str] = None
    job_name: str = "txn_stress_test"

    def validate(self) -> None:
        """Validate monitoring configuration."""
        if not self.job_name:
            raise ConfigurationError("job_name cannot be empty")


@dataclass
class OutputConfig:
    """Output configuration."""
    summary_path: Path = Path("output/summary.csv")
    log_level: str = "INFO"

    def validate(self) -> None:
        """Validate output configuration."""
        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR"]:
            raise ConfigurationError(f"Invalid log level: {self.log_level}")


_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def _coerce(value: Any, type_name: str) -> Any:
    """Convert a raw property value to the declared type of a config field."""
    if type_name.startswith("Optional["):
        if value is None or (isinstance(value, str) and value.lower() in ("", "none", "null")):
            return None
        type_name = type_name[len("Optional["):-1]

    if type_name == "bool":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"Not a boolean value: {value!r}")

    try:
        if type_name == "int":
            return int(value)
        if type_name == "float":
            return float(value)
        if type_name == "Path":
            return Path(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Cannot convert {value!r} to {type_name}: {e}")

    return value


class Config:
    """Main configuration container."""

    SECTIONS = ("workload", "client", "redis", "monitoring", "output")

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration."""
        self.config_path = config_path
        self.data: Dict[str, Any] = {}

        # Initialize with defaults
        self.workload = WorkloadConfig()
        self.client = ClientConfig()
        self.redis = RedisConfig()
        self.monitoring = MonitoringConfig()
        self.output = OutputConfig()

        # Always merge environment variables
        self._merge_env_vars()
        self._update_from_dict()

        if config_path:
            self.load()
        else:
            self.validate()

    def load(self) -> None:
        """Load configuration from file."""
        if not self.config_path:
            raise ConfigurationError("No configuration path specified")

        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        logger.info(f"Loading configuration from {self.config_path}")

        try:
            with open(self.config_path, 'r') as f:
                self.data = yaml.safe_load(f) or {}

            if not isinstance(self.data, dict):
                raise ConfigurationError(f"Configuration root must be a mapping: {self.config_path}")

            # Environment wins over file values
            self._merge_env_vars()
            self._update_from_dict()
            self.validate()

            logger.info("Configuration loaded successfully")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML configuration: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise

    def _merge_env_vars(self) -> None:
        """Merge environment variables into configuration."""
        if "REDIS_HOST" in os.environ:
            self.data.setdefault("redis", {})["host"] = os.environ["REDIS_HOST"]
        if "REDIS_PORT" in os.environ:
            self.data.setdefault("redis", {})["port"] = int(os.environ["REDIS_PORT"])
        if "REDIS_PASSWORD" in os.environ:
            self.data.setdefault("redis", {})["password"] = os.environ["REDIS_PASSWORD"]

        if "TST_OUTPUT_DIR" in os.environ:
            output_dir = Path(os.environ["TST_OUTPUT_DIR"])
            self.data.setdefault("output", {})["summary_path"] = str(output_dir / "summary.csv")
        if "TST_LOG_LEVEL" in os.environ:
            self.data.setdefault("output", {})["log_level"] = os.environ["TST_LOG_LEVEL"]

        if "TST_THREADS" in os.environ:
            self.data.setdefault("client", {})["threads"] = int(os.environ["TST_THREADS"])
        if "TST_SEED" in os.environ:
            self.data.setdefault("client", {})["seed"] = int(os.environ["TST_SEED"])
        if "TST_BACKEND" in os.environ:
            self.data.setdefault("client", {})["backend"] = os.environ["TST_BACKEND"]

    def _update_from_dict(self) -> None:
        """Update configuration objects from loaded data."""
        for section in self.SECTIONS:
            section_data = self.data.get(section)
            if not section_data:
                continue
            if not isinstance(section_data, dict):
                raise ConfigurationError(f"Section '{section}' must be a mapping")

            current = getattr(self, section)
            known = {f.name: f.type for f in fields(current)}
            updates = {}
            for key, value in section_data.items():
                if key not in known:
                    logger.warning(f"Ignoring unknown {section} option: {key}")
                    continue
                updates[key] = _coerce(value, known[key])

            setattr(self, section, replace(current, **updates))

    def apply_properties(self, properties: Dict[str, Any]) -> None:
        """
        Apply flat ``name=value`` overrides.

        Names may be qualified (``redis.host``); unqualified names are looked
        up in the workload section first, then the other sections.

        Args:
            properties: Mapping of property name to raw value
        """
        for name, value in properties.items():
            section, _, key = name.rpartition(".")
            candidates = [section] if section else list(self.SECTIONS)

            for candidate in candidates:
                if candidate not in self.SECTIONS:
                    raise ConfigurationError(f"Unknown configuration section: {candidate}")
                current = getattr(self, candidate)
                known = {f.name: f.type for f in fields(current)}
                if key in known:
                    setattr(self, candidate, replace(current, **{key: _coerce(value, known[key])}))
                    self.data.setdefault(candidate, {})[key] = value
                    logger.debug(f"Property override {candidate}.{key}={value}")
                    break
            else:
                raise ConfigurationError(f"Unknown property: {name}")

        self.validate()

    def validate(self) -> None:
        """Validate all configuration sections."""
        try:
            self.workload.validate()
            self.client.validate()
            self.redis.validate()
            self.monitoring.validate()
            self.output.validate()
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def get_workload_config(self) -> WorkloadConfig:
        """Get workload configuration."""
        return self.workload

    def get_client_config(self) -> ClientConfig:
        """Get client configuration."""
        return self.client

    def get_redis_config(self) -> RedisConfig:
        """Get Redis configuration."""
        return self.redis

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        result = {}
        for section in self.SECTIONS:
            values = asdict(getattr(self, section))
            result[section] = {k: str(v) if isinstance(v, Path) else v for k, v in values.items()}
        return result


class ConfigValidator:
    """Validates configuration values."""

    @staticmethod
    def validate(config: Dict[str, Any]) -> bool:
        """Validate configuration dictionary."""
        try:
            temp_config = Config()
            temp_config.data = config
            temp_config._update_from_dict()
            temp_config.validate()
            return True
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False
