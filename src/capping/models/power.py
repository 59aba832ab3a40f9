# Copyright (c) Syntropy Systems
"""Power, energy and BMC reading types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from .base import CappingBaseModel


def utc_now() -> datetime:
    """Current wall-clock time, timezone aware."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CapSetting:
    """Current BMC cap configuration."""

    is_active: bool
    power_limit: int


@dataclass(frozen=True)
class PowerReading:
    """Parsed output of a BMC power reading command."""

    instant: int = 0
    minimum: int = 0
    maximum: int = 0
    average: int = 0
    timestamp: datetime | None = None


@dataclass(frozen=True)
class BMCSample:
    """One poll of the BMC: instantaneous power plus the cap in force."""

    timestamp: datetime
    power: int
    cap_level: int
    cap_is_active: bool

    @classmethod
    def from_reading(cls, power: int, cap_setting: CapSetting) -> BMCSample:
        """Build a sample stamped with the current time."""
        return cls(
            timestamp=utc_now(),
            power=power,
            cap_level=cap_setting.power_limit,
            cap_is_active=cap_setting.is_active,
        )


@dataclass(frozen=True)
class EnergyReading:
    """Cumulative energy for one domain, in microjoules."""

    domain: str
    energy_uj: int

    def __str__(self) -> str:
        return f"{self.domain},{self.energy_uj}"


@dataclass(frozen=True)
class EnergySnapshot:
    """Timestamped energy readings for every discovered domain."""

    timestamp: datetime
    readings: tuple[EnergyReading, ...] = field(default_factory=tuple)

    @property
    def domains(self) -> tuple[str, ...]:
        return tuple(r.domain for r in self.readings)

    def __str__(self) -> str:
        stamp = self.timestamp.isoformat(timespec="milliseconds")
        return ",".join([stamp, *(str(r) for r in self.readings)])


class DomainPower(CappingBaseModel):
    """Power drawn by one domain over a sampling interval."""

    domain: str
    power_watts: int


class PowerSample(CappingBaseModel):
    """Power per domain, stamped at the midpoint of the two snapshots it came from."""

    timestamp: datetime
    data: list[DomainPower]

    def total_watts(self, prefix: str = "pkg") -> int:
        """Sum of the power of all domains whose name starts with prefix."""
        return sum(d.power_watts for d in self.data if d.domain.startswith(prefix))
