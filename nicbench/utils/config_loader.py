#!/usr/bin/env python3
"""Configuration loader - defaults, optional YAML file, environment overrides"""

import copy
import logging
import os
import re
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..core.errors import ConfigError


logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "NICBENCH_CONFIG"

DEFAULTS: Dict[str, Any] = {
    "tuning": {
        "num_cores": 8,
        "cpu_list": None,          # 0-(num_cores-1) when unset
        "iface": "eth0",
        "combined_queues": None,   # num_cores when unset
        "queue_size": 8192,
        "defaults_file": "/var/tmp/nic_benchmark.defaults",
        "irq_pattern": r"mlx5_comp[0-9]+@pci:{bus}",
        "disable_cstates": False,
        "stop_irqbalance": False,
        "revert_tx_ring_from": "rx",
    },
    "benchmark": {
        "server": "192.168.2.1",
        "parallel_threads": [1, 2, 4, 8, 16, 32, 64],
        "duration": 60,
        "repeat_count": 3,
        "sleep_duration": 10,
        "omit_seconds": 10,
        "report_interval": 0,
        "zero_copy": True,
        "cpu_list": "64-127",
        "iperf_binary": "iperf3",
        "results_dir": None,
    },
    "monitor": {
        "start_core": 96,
        "end_core": 127,
        "interval": 1,
        "mpstat_binary": "mpstat",
        "csv_file": None,
    },
    "ssh_hosts": {},
}


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_int_list(value: str) -> List[int]:
    return [int(item) for item in value.replace(" ", ",").split(",") if item]


# Environment variable -> (dotted key, converter)
ENV_OVERRIDES: Dict[str, tuple] = {
    "NUM_CORES": ("tuning.num_cores", int),
    "CPU_LIST": ("tuning.cpu_list", str),
    "IFACE": ("tuning.iface", str),
    "COMBINED_QUEUES": ("tuning.combined_queues", int),
    "QUEUE_SIZE": ("tuning.queue_size", int),
    "DEFAULTS_FILE": ("tuning.defaults_file", str),
    "IRQ_PATTERN": ("tuning.irq_pattern", str),
    "DISABLE_CSTATES": ("tuning.disable_cstates", _to_bool),
    "STOP_IRQBALANCE": ("tuning.stop_irqbalance", _to_bool),
    "REVERT_TX_RING_FROM": ("tuning.revert_tx_ring_from", str),
    "IPERF_SERVER": ("benchmark.server", str),
    "PARALLEL_THREADS": ("benchmark.parallel_threads", _to_int_list),
    "TEST_DURATION": ("benchmark.duration", int),
    "REPEAT_COUNT": ("benchmark.repeat_count", int),
    "SLEEP_DURATION": ("benchmark.sleep_duration", int),
    "OMIT_SECONDS": ("benchmark.omit_seconds", int),
    "REPORT_INTERVAL": ("benchmark.report_interval", int),
    "ZERO_COPY": ("benchmark.zero_copy", _to_bool),
    "CLIENT_CPU_LIST": ("benchmark.cpu_list", str),
    "IPERF_BINARY": ("benchmark.iperf_binary", str),
    "RESULTS_DIR": ("benchmark.results_dir", str),
    "START_CORE": ("monitor.start_core", int),
    "END_CORE": ("monitor.end_core", int),
    "SAMPLE_INTERVAL": ("monitor.interval", int),
    "MPSTAT_BINARY": ("monitor.mpstat_binary", str),
    "MONITOR_CSV": ("monitor.csv_file", str),
}


def _merge(base: Dict[str, Any], override: Mapping[str, Any]):
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value


class Config:
    """Layered configuration with dotted-key access"""

    def __init__(self, config_path: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration

        Args:
            config_path: Optional YAML file overlaid on the defaults
            environ: Environment mapping (defaults to os.environ)
        """
        self.config = copy.deepcopy(DEFAULTS)
        environ = os.environ if environ is None else environ

        config_path = config_path or environ.get(CONFIG_ENV_VAR)
        if config_path:
            _merge(self.config, self._load_from_file(config_path))

        self._apply_environment(environ)
        self.validate()

    def _load_from_file(self, filepath: str) -> Dict[str, Any]:
        """Load YAML file"""
        if not os.path.exists(filepath):
            raise ConfigError(f"Config file not found: {filepath}")

        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing YAML file {filepath}: {e}") from e

        if not isinstance(content, dict):
            raise ConfigError(f"Config file {filepath} must contain a mapping")

        logger.info(f"Loaded config: {filepath}")
        return content

    def _apply_environment(self, environ: Mapping[str, str]):
        for var, (key, convert) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                self.set(key, convert(raw))
            except ValueError as e:
                raise ConfigError(f"Invalid value for {var}: {raw!r} ({e})") from e
            logger.debug(f"{var} overrides {key}")

    def get(self, key: str, default=None) -> Any:
        """Get a value by dotted key, e.g. 'tuning.iface'"""
        value = self.config
        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        keys = key.split('.')
        config = self.config
        for k in keys[:-1]:
            config = config.setdefault(k, {})
        config[keys[-1]] = value

    @property
    def cpu_list(self) -> str:
        """Tuning CPU list, derived from num_cores when not given"""
        cpu_list = self.get("tuning.cpu_list")
        if cpu_list:
            return str(cpu_list)
        return f"0-{int(self.get('tuning.num_cores')) - 1}"

    @property
    def combined_queues(self) -> int:
        queues = self.get("tuning.combined_queues")
        if queues is None:
            return int(self.get("tuning.num_cores"))
        return int(queues)

    def validate(self):
        """Check value ranges

        Raises:
            ConfigError: on the first invalid value
        """
        positive = [
            "tuning.num_cores", "tuning.queue_size", "benchmark.duration",
            "benchmark.repeat_count", "monitor.interval",
        ]
        non_negative = [
            "benchmark.sleep_duration", "benchmark.omit_seconds",
            "benchmark.report_interval", "monitor.start_core", "monitor.end_core",
        ]
        for key in positive + non_negative:
            value = self.get(key)
            minimum = 1 if key in positive else 0
            if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
                raise ConfigError(f"{key} must be an integer >= {minimum}, got {value!r}")

        if self.combined_queues < 1:
            raise ConfigError(f"tuning.combined_queues must be positive, got {self.combined_queues}")

        threads = self.get("benchmark.parallel_threads")
        if not threads or not all(isinstance(t, int) and t > 0 for t in threads):
            raise ConfigError(f"benchmark.parallel_threads must be positive integers, got {threads!r}")

        if self.get("tuning.revert_tx_ring_from") not in ("rx", "tx"):
            raise ConfigError("tuning.revert_tx_ring_from must be 'rx' or 'tx'")

        pattern = self.get("tuning.irq_pattern")
        if not isinstance(pattern, str) or not pattern:
            raise ConfigError(f"tuning.irq_pattern must be a non-empty string, got {pattern!r}")
        try:
            re.compile(pattern.replace("{bus}", re.escape("0000:00:00.0")))
        except re.error as e:
            raise ConfigError(f"Invalid IRQ_PATTERN {pattern!r}: {e}") from e

        if self.get("monitor.end_core") < self.get("monitor.start_core"):
            raise ConfigError("monitor.end_core must not be below monitor.start_core")

        if not isinstance(self.get("ssh_hosts"), dict):
            raise ConfigError("ssh_hosts must be a mapping")
        for host_ref, host_config in self.get("ssh_hosts").items():
            if not isinstance(host_config, dict) or 'host' not in host_config:
                raise ConfigError(f"Missing required key 'host' in SSH config for {host_ref}")


def load_config(config_path: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None) -> Config:
    """Load defaults, the YAML file and environment overrides"""
    return Config(config_path, environ)
