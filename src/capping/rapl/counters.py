# Copyright (c) Syntropy Systems
"""Discovery and reading of RAPL energy counters."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from capping.config import DEFAULT_RAPL_ROOT
from capping.errors import ConfigurationError, HardwareCommandError, ParseError
from capping.models.power import EnergyReading, EnergySnapshot, utc_now

logger = logging.getLogger(__name__)

# One directory per domain (usually a socket); sub-domain 0 of each is the core
DOMAIN_GLOB = "intel-rapl:*"
ENERGY_FILE = "energy_uj"
MAX_ENERGY_FILE = "max_energy_range_uj"


class EnergyCounterSource(Protocol):
    """Anything that can produce energy snapshots and a wraparound ceiling."""

    def read_current_energy(self) -> EnergySnapshot:
        ...

    def max_energy(self) -> int:
        ...


def domain_from_path(path: Path) -> int:
    """Extract the domain id from a RAPL directory name.

    >>> domain_from_path(Path("/sys/devices/virtual/powercap/intel-rapl/intel-rapl:16"))
    16
    """
    _, sep, domain = path.name.partition(":")
    if not sep:
        msg = f"No colon separator in RAPL directory name: {path.name}"
        raise ParseError(msg)
    if not (domain.isascii() and domain.isdigit()):
        msg = f"No domain number after the colon in: {path.name}"
        raise ParseError(msg)
    return int(domain)


def read_counter(path: Path) -> int:
    """Read a single unsigned integer from a counter file."""
    try:
        text = path.read_text()
    except OSError as e:
        msg = f"Failed to read energy counter {path}: {e}"
        raise HardwareCommandError(msg) from e

    value = text.strip()
    if not (value.isascii() and value.isdigit()):
        msg = f"Malformed energy counter in {path}: {value!r}"
        raise ParseError(msg)
    return int(value)


class RaplCounters:
    """Fixed set of core and package energy counter paths, found once at construction."""

    root: Path
    core_paths: dict[int, Path]
    pkg_paths: dict[int, Path]
    _max_energy_path: Path

    def __init__(
        self,
        root: Path | str = DEFAULT_RAPL_ROOT,
        max_energy_path: Path | str | None = None,
    ) -> None:
        self.root = Path(root)
        self.core_paths = {}
        self.pkg_paths = {}

        for path in sorted(self.root.glob(DOMAIN_GLOB)):
            if not path.is_dir():
                continue
            domain = domain_from_path(path)
            self.pkg_paths[domain] = path / ENERGY_FILE
            self.core_paths[domain] = path / f"{path.name}:0" / ENERGY_FILE

        if not self.pkg_paths:
            msg = f"No RAPL domains found under {self.root}"
            raise ConfigurationError(msg)

        # Sorted by id so every snapshot lists the domains in the same order
        self.core_paths = dict(sorted(self.core_paths.items()))
        self.pkg_paths = dict(sorted(self.pkg_paths.items()))

        if max_energy_path is None:
            first = next(iter(self.pkg_paths.values()))
            self._max_energy_path = first.parent / MAX_ENERGY_FILE
        else:
            self._max_energy_path = Path(max_energy_path)

        logger.debug("RAPL pkg_paths: %s", self.pkg_paths)
        logger.debug("RAPL core_paths: %s", self.core_paths)

    def read_current_energy(self) -> EnergySnapshot:
        """Read every counter into one timestamped snapshot (microjoules)."""
        readings: list[EnergyReading] = []
        for paths, label in ((self.core_paths, "core"), (self.pkg_paths, "pkg")):
            for domain_id, path in paths.items():
                readings.append(EnergyReading(f"{label}{domain_id}", read_counter(path)))
        return EnergySnapshot(timestamp=utc_now(), readings=tuple(readings))

    def max_energy(self) -> int:
        """Value at which the counters wrap back to zero (microjoules)."""
        return read_counter(self._max_energy_path)

    def domain_count(self) -> int:
        return len(self.pkg_paths)
