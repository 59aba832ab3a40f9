# Copyright (c) Syntropy Systems
"""Configuration management for capping."""
from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import yaml

from capping.errors import ConfigurationError

ENV_PREFIX = "CAPPING_"
DEFAULT_RAPL_ROOT = "/sys/devices/virtual/powercap/intel-rapl"


@dataclass(frozen=True)
class CappingConfig:
    """Configuration for capping. Built once at startup, never mutated."""

    # BMC connection
    bmc_hostname: str = "localhost"
    bmc_username: str = "ADMIN"
    bmc_password: str = ""
    ipmi: str = "ipmitool"

    # Remote agent
    agent_url: str = "http://localhost:8000"
    # Added to the expected run time to form the HTTP timeout (seconds)
    agent_timeout_margin: float = 30.0

    # Test timing (seconds)
    warmup_secs: int = 30
    test_time_secs: int = 60
    bmc_settle_secs: float = 2.0
    step_interval_secs: float = 1.0

    # Step ramp size (watts)
    step_size_watts: int = 100

    # Power levels the suites move between (watts)
    power_low: int = 200
    power_high: int = 580

    # Monitor cadence (seconds)
    bmc_poll_interval_secs: float = 0.5
    bmc_inter_command_secs: float = 0.5
    rapl_poll_interval_secs: float = 0.5
    rapl_end_delay_secs: int = 5

    # Agent side
    firestarter_path: str = "firestarter"
    rapl_root: str = DEFAULT_RAPL_ROOT
    max_energy_path: str | None = None


def _coerce(name: str, value: object, field_type: str) -> object:
    """Coerce a raw YAML or environment value to the field's declared type."""
    try:
        if field_type == "int":
            if isinstance(value, bool):
                raise TypeError
            return int(cast("int", value))
        if field_type == "float":
            if isinstance(value, bool):
                raise TypeError
            return float(cast("float", value))
        if field_type == "str | None":
            return None if value is None else str(value)
        return str(value)
    except (TypeError, ValueError) as e:
        msg = f"Invalid value for '{name}': {value!r}"
        raise ConfigurationError(msg) from e


def find_capping_dir(start_path: Path | None = None) -> Path | None:
    """Find the nearest .capping directory by walking up from start_path.

    Returns None if no .capping directory is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        capping_dir = current / ".capping"
        if capping_dir.is_dir():
            return capping_dir
        current = current.parent

    # Check root
    capping_dir = current / ".capping"
    if capping_dir.is_dir():
        return capping_dir

    return None


def get_global_config_dir() -> Path:
    """Get the global capping config directory (~/.capping)."""
    return Path.home() / ".capping"


def find_config_file(config_path: Path | None = None) -> Path | None:
    """Locate the config file.

    Looks for config in:
    1. Provided config_path
    2. Nearest .capping/config.yaml walking up
    3. ~/.capping/config.yaml
    """
    if config_path is not None:
        if not config_path.exists():
            msg = f"Config file not found: {config_path}"
            raise ConfigurationError(msg)
        return config_path

    found_dir = find_capping_dir()
    if found_dir is not None and (found_dir / "config.yaml").exists():
        return found_dir / "config.yaml"

    global_config = get_global_config_dir() / "config.yaml"
    if global_config.exists():
        return global_config

    return None


def load_config(
    config_path: Path | None = None,
    environ: dict[str, str] | None = None,
    **overrides: object,
) -> CappingConfig:
    """Load configuration from YAML, then environment, then explicit overrides.

    Unknown YAML keys are ignored. Overrides whose value is None are skipped
    so CLI options that were not given fall through to the file.
    """
    if environ is None:
        environ = dict(os.environ)

    fields = {f.name: cast("str", f.type) for f in dataclasses.fields(CappingConfig)}
    values: dict[str, object] = {}

    path = find_config_file(config_path)
    if path is not None:
        try:
            with path.open() as f:
                data = cast("dict[str, object]", yaml.safe_load(f) or {})
        except yaml.YAMLError as e:
            msg = f"Invalid YAML in {path}: {e}"
            raise ConfigurationError(msg) from e
        if not isinstance(data, dict):
            msg = f"Config file {path} must contain a mapping"
            raise ConfigurationError(msg)
        for name, value in data.items():
            if name in fields:
                values[name] = _coerce(name, value, fields[name])

    for name, field_type in fields.items():
        env_value = environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = _coerce(name, env_value, field_type)

    for name, value in overrides.items():
        if name not in fields:
            msg = f"Unknown configuration field: {name}"
            raise ConfigurationError(msg)
        if value is not None:
            values[name] = _coerce(name, value, fields[name])

    config = CappingConfig(**values)  # type: ignore[arg-type]
    if config.step_size_watts <= 0:
        msg = "step_size_watts must be positive"
        raise ConfigurationError(msg)
    if config.power_low == config.power_high:
        msg = "power_low and power_high must differ"
        raise ConfigurationError(msg)
    return config
