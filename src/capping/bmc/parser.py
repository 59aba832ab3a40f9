# Copyright (c) Syntropy Systems
"""Parsers for ipmitool DCMI power command output.

Both formats are blocks of "key: value" lines, some blank, in no guaranteed
order. Unrecognised keys are ignored; a recognised key with a malformed value
raises ParseError.
"""
from __future__ import annotations

from datetime import datetime

from capping.errors import ParseError
from capping.models.power import CapSetting, PowerReading

# Tue May  9 14:24:36 2023
BMC_TIMESTAMP_FORMAT = "%a %b %d %H:%M:%S %Y"
CAP_ACTIVE_STATE = "Power Limit Active"

_POWER_FIELDS = {
    "Instantaneous": "instant",
    "Minimum": "minimum",
    "Maximum": "maximum",
    "Average": "average",
}


def parse_number(value: str) -> int:
    """Parse an unsigned integer from the first word of value.

    >>> parse_number("220 Watts")
    220
    """
    parts = value.split()
    if not parts:
        msg = f"Expected a number, got an empty value: {value!r}"
        raise ParseError(msg)
    word = parts[0]
    if not (word.isascii() and word.isdigit()):
        msg = f"Expected an unsigned integer, got {word!r}"
        raise ParseError(msg)
    return int(word)


def parse_bmc_timestamp(value: str) -> datetime:
    """Parse a BMC date string into a naive local datetime."""
    # strptime's %d accepts the space padded day once runs of spaces are collapsed
    normalized = " ".join(value.split())
    try:
        return datetime.strptime(normalized, BMC_TIMESTAMP_FORMAT)
    except ValueError as e:
        msg = f"Failed to parse BMC timestamp: {value!r}"
        raise ParseError(msg) from e


def parse_power_reading(output: str) -> PowerReading:
    """Parse the output of `dcmi power reading`."""
    values: dict[str, object] = {}

    for line in output.splitlines():
        # The IPMI timestamp contains colons, so split on ": " only once
        key, sep, value = line.strip().partition(": ")
        if not sep:
            continue
        key_parts = key.split()
        if not key_parts:
            continue

        first = key_parts[0]
        if first in _POWER_FIELDS:
            values[_POWER_FIELDS[first]] = parse_number(value)
        elif first == "IPMI":
            values["timestamp"] = parse_bmc_timestamp(value)

    return PowerReading(**values)  # type: ignore[arg-type]


def parse_cap_settings(output: str) -> CapSetting:
    """Parse the output of `dcmi power get_limit`."""
    is_active = False
    power_limit = 0

    for line in output.splitlines():
        key, sep, value = line.strip().partition(":")
        if not sep:
            continue
        key = key.strip()
        if key == "Current Limit State":
            is_active = value.strip() == CAP_ACTIVE_STATE
        elif key == "Power Limit":
            power_limit = parse_number(value)

    return CapSetting(is_active=is_active, power_limit=power_limit)
