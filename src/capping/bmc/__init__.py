# Copyright (c) Syntropy Systems
"""BMC command access, output parsing and background sampling."""

from .client import BMC, BMCInterface
from .monitor import BMCMonitor
from .parser import parse_cap_settings, parse_number, parse_power_reading

__all__ = [
    "BMC",
    "BMCInterface",
    "BMCMonitor",
    "parse_cap_settings",
    "parse_number",
    "parse_power_reading",
]
