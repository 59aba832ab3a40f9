# Copyright (c) Syntropy Systems
"""RAPL energy counters: discovery, sampling and conversion to power."""

from .convert import convert_energy_to_power, energy_delta
from .counters import EnergyCounterSource, RaplCounters, domain_from_path
from .monitor import EnergyMonitor

__all__ = [
    "EnergyCounterSource",
    "EnergyMonitor",
    "RaplCounters",
    "convert_energy_to_power",
    "domain_from_path",
    "energy_delta",
]
