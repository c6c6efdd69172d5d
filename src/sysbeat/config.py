"""
Configuration loading for sysbeat.

Reads a TOML file with an ``[input]`` table for the sampler and an
``[output]`` table for the event queue:

    [input]
    period = 10
    procs = ["^nginx", "python"]
    cpu_mode = "single_core"
    evict_stale = true

    [output]
    queue_size = 1000
"""

import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sysbeat.errors import ConfigError
from sysbeat.matcher import MATCH_ALL
from sysbeat.trackers import CpuPercentMode

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SamplerConfig:
    """Settings consumed by the Sampler and the CLI."""

    period: float = 1.0
    patterns: list[str] = field(default_factory=lambda: [MATCH_ALL])
    cpu_mode: CpuPercentMode = CpuPercentMode.SINGLE_CORE
    evict_stale: bool = True
    queue_size: int = 0  # 0 means unbounded

    def validate(self) -> None:
        """
        Check every field.

        Raises:
            ConfigError: On the first invalid field.
        """
        if isinstance(self.period, bool) or not isinstance(self.period, (int, float)):
            raise ConfigError(f"period must be a number, got {self.period!r}")
        if self.period <= 0:
            raise ConfigError(f"period must be positive, got {self.period!r}")

        if not isinstance(self.patterns, list):
            raise ConfigError(f"procs must be a list of strings, got {self.patterns!r}")
        for pattern in self.patterns:
            if not isinstance(pattern, str):
                raise ConfigError(f"procs entries must be strings, got {pattern!r}")
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigError(f"Invalid process pattern {pattern!r}: {e}") from e

        if not isinstance(self.cpu_mode, CpuPercentMode):
            raise ConfigError(f"Unknown cpu_mode {self.cpu_mode!r}")
        if not isinstance(self.evict_stale, bool):
            raise ConfigError(f"evict_stale must be true or false, got {self.evict_stale!r}")
        if isinstance(self.queue_size, bool) or not isinstance(self.queue_size, int):
            raise ConfigError(f"queue_size must be an integer, got {self.queue_size!r}")
        if self.queue_size < 0:
            raise ConfigError(f"queue_size must not be negative, got {self.queue_size!r}")


def parse_cpu_mode(value: Any) -> CpuPercentMode:
    """Map a config or CLI string onto a CpuPercentMode."""
    if isinstance(value, CpuPercentMode):
        return value
    try:
        return CpuPercentMode(value)
    except ValueError:
        choices = ", ".join(m.value for m in CpuPercentMode)
        raise ConfigError(f"Unknown cpu_mode {value!r}, expected one of: {choices}") from None


def config_from_dict(data: dict[str, Any]) -> SamplerConfig:
    """
    Build and validate a SamplerConfig from parsed TOML data.

    Missing keys take their defaults; an empty ``procs`` list means match all.
    """
    input_data = data.get("input", {})
    output_data = data.get("output", {})
    if not isinstance(input_data, dict) or not isinstance(output_data, dict):
        raise ConfigError("[input] and [output] must be tables")

    config = SamplerConfig()
    if "period" in input_data:
        config.period = input_data["period"]
    if input_data.get("procs"):
        config.patterns = input_data["procs"]
    if "cpu_mode" in input_data:
        config.cpu_mode = parse_cpu_mode(input_data["cpu_mode"])
    if "evict_stale" in input_data:
        config.evict_stale = input_data["evict_stale"]
    if "queue_size" in output_data:
        config.queue_size = output_data["queue_size"]

    config.validate()
    return config


def load_config(path: Path | str) -> SamplerConfig:
    """
    Load and validate a TOML configuration file.

    Raises:
        ConfigError: If the file is missing, malformed or holds invalid values.
    """
    path = Path(path)
    logger.info("Loading configuration from: %s", path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed configuration file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e

    return config_from_dict(data)
