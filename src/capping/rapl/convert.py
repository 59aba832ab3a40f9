# Copyright (c) Syntropy Systems
"""Conversion of cumulative energy snapshots into power samples."""
from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from capping.errors import ParseError
from capping.models.power import DomainPower, PowerSample

if TYPE_CHECKING:
    from collections.abc import Sequence

    from capping.models.power import EnergySnapshot

ONE_MILLISECOND = timedelta(milliseconds=1)


def energy_delta(previous: int, current: int, max_energy_uj: int) -> int:
    """Energy used between two counter readings, allowing for one wraparound."""
    if current < previous:
        return max_energy_uj - previous + current
    return current - previous


def convert_energy_to_power(
    snapshots: Sequence[EnergySnapshot],
    max_energy_uj: int,
) -> list[PowerSample]:
    """Divide energy deltas by time deltas to give power.

    One sample per consecutive pair of snapshots, stamped at the midpoint of
    the pair. Energy is in uJ and time in ms; the integer quotient is reported
    as whole watts.
    """
    if len(snapshots) < 2:
        return []

    domains = snapshots[0].domains
    samples: list[PowerSample] = []

    for previous, current in zip(snapshots, snapshots[1:]):
        if current.domains != domains:
            msg = (
                f"Energy snapshot domains changed mid-run: "
                f"expected {list(domains)}, got {list(current.domains)}"
            )
            raise ParseError(msg)

        time_delta = current.timestamp - previous.timestamp
        time_delta_ms = time_delta // ONE_MILLISECOND
        if time_delta_ms <= 0:
            msg = (
                f"Energy snapshots are not at least 1ms apart: "
                f"{previous.timestamp.isoformat()} -> {current.timestamp.isoformat()}"
            )
            raise ParseError(msg)

        midpoint = current.timestamp - time_delta / 2
        data = [
            DomainPower(
                domain=now.domain,
                power_watts=energy_delta(before.energy_uj, now.energy_uj, max_energy_uj)
                // time_delta_ms,
            )
            for before, now in zip(previous.readings, current.readings)
        ]
        samples.append(PowerSample(timestamp=midpoint, data=data))

    return samples
