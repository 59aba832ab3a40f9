# Copyright (c) Syntropy Systems
"""Pytest fixtures for capping tests."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from capping.config import CappingConfig
from capping.errors import HardwareCommandError
from capping.models.power import CapSetting, PowerSample
from capping.models.test import Operation

MAX_ENERGY_UJ = 262_143_328_850


def write_counter(path: Path, value: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(f"{value}\n")


@pytest.fixture
def rapl_root(tmp_path: Path) -> Path:
    """Fake powercap sysfs tree with two sockets."""
    root = tmp_path / "intel-rapl"
    for domain in (0, 1):
        domain_dir = root / f"intel-rapl:{domain}"
        write_counter(domain_dir / "energy_uj", 1_000_000 * (domain + 1))
        write_counter(domain_dir / f"intel-rapl:{domain}:0" / "energy_uj", 500_000 * (domain + 1))
        write_counter(domain_dir / "max_energy_range_uj", MAX_ENERGY_UJ)
    return root


@pytest.fixture
def fast_config() -> CappingConfig:
    """Configuration with every delay shrunk so tests run instantly."""
    return CappingConfig(
        warmup_secs=0,
        test_time_secs=1,
        bmc_settle_secs=0.0,
        step_interval_secs=0.0,
        bmc_poll_interval_secs=0.01,
        bmc_inter_command_secs=0.0,
        rapl_poll_interval_secs=0.01,
        rapl_end_delay_secs=0,
    )


class FakeBMC:
    """Records every BMC write in order; reads return the current fake state."""

    def __init__(self, power: int = 220) -> None:
        self.commands: list[tuple[str, int | None]] = []
        self.power = power
        self.level = 0
        self.active = False
        self.reads = 0
        self.fail_on: str | None = None
        self._lock = threading.Lock()

    def current_power(self) -> int:
        with self._lock:
            self.reads += 1
        if self.fail_on == "read":
            msg = "ipmitool: Unable to establish IPMI v2 / RMCP+ session"
            raise HardwareCommandError(msg)
        return self.power

    def current_cap_settings(self) -> CapSetting:
        return CapSetting(is_active=self.active, power_limit=self.level)

    def set_cap_power_level(self, watts: int) -> None:
        if self.fail_on == "set_level":
            msg = "set_limit failed"
            raise HardwareCommandError(msg)
        self.commands.append(("set_level", watts))
        self.level = watts

    def set_capping(self, operation: Operation) -> None:
        if self.fail_on == operation.value:
            msg = f"{operation.value} failed"
            raise HardwareCommandError(msg)
        self.commands.append((operation.value, None))
        self.active = operation is Operation.ACTIVATE


class FakeAgent:
    """Load agent stand-in that returns canned samples."""

    def __init__(self, samples: list[PowerSample] | None = None, error: Exception | None = None) -> None:
        self.samples = samples or []
        self.error = error
        self.requests = []

    def run_load_test(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.samples


@pytest.fixture
def fake_bmc() -> FakeBMC:
    return FakeBMC()


@pytest.fixture
def fake_agent() -> FakeAgent:
    return FakeAgent()
