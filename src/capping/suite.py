# Copyright (c) Syntropy Systems
"""Test suite generation.

A suite is the Cartesian product of capping order x operation x step mode x
ordered power level pair x one suite-specific axis. Enumeration order is
fixed by the enum definition order and the axis order, so identical inputs
always yield the identical sequence.
"""
from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from capping.errors import ConfigurationError
from capping.models.test import CappingOrder, CapStep, Operation, Test

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from capping.config import CappingConfig

POWER_LOW = 200
POWER_HIGH = 580
AXIS_LENGTH = 11
LOAD_PERIODS_US = (10_000, 1_000_000)


class SuiteKind(str, Enum):
    """Which parameter a suite varies besides the capping axes."""

    LOAD = "load"
    THREADS = "threads"


def power_level_pairs(levels: Sequence[int]) -> list[tuple[int, int]]:
    """Ordered (cap_from, cap_to) pairs drawn without repetition from levels."""
    return list(itertools.permutations(levels, 2))


def load_percentages(count: int = AXIS_LENGTH) -> list[int]:
    """Descending load percentages: 100, 99, ... for count values."""
    return [100 - p for p in range(count)]


def thread_counts(online_cpus: int, count: int = AXIS_LENGTH) -> list[int]:
    """Descending thread counts starting at the online CPU count."""
    return [online_cpus - t for t in range(count) if online_cpus - t > 0]


class _TestSuite(ABC):
    """Shared leading axes; subclasses provide the trailing parameter axis."""

    power_levels: tuple[int, ...]

    def __init__(self, power_levels: Sequence[int] = (POWER_LOW, POWER_HIGH)) -> None:
        self.power_levels = tuple(power_levels)

    def _leading_axes(
        self,
    ) -> tuple[list[CappingOrder], list[Operation], list[CapStep], list[tuple[int, int]]]:
        return (
            list(CappingOrder),
            list(Operation),
            list(CapStep),
            power_level_pairs(self.power_levels),
        )

    @abstractmethod
    def __iter__(self) -> Iterator[Test]:
        ...

    def count(self) -> int:
        """Number of tests the suite generates."""
        return sum(1 for _ in self)


class LoadTestSuite(_TestSuite):
    """Tests that vary the load percentage and load period at full thread count."""

    loads: list[int]
    load_periods: tuple[int, ...]

    def __init__(
        self,
        power_levels: Sequence[int] = (POWER_LOW, POWER_HIGH),
        loads: Sequence[int] | None = None,
        load_periods: Sequence[int] = LOAD_PERIODS_US,
    ) -> None:
        super().__init__(power_levels)
        self.loads = list(loads) if loads is not None else load_percentages()
        self.load_periods = tuple(load_periods)

    def __iter__(self) -> Iterator[Test]:
        for order, operation, step, (cap_from, cap_to), load_pct, load_period in itertools.product(
            *self._leading_axes(), self.loads, self.load_periods
        ):
            yield Test(
                capping_order=order,
                operation=operation,
                step=step,
                cap_from=cap_from,
                cap_to=cap_to,
                load_pct=load_pct,
                load_period_us=load_period,
                n_threads=0,
            )


class ThreadTestSuite(_TestSuite):
    """Tests that vary the number of load threads at full load."""

    online_cpus: int
    threads: list[int]

    def __init__(
        self,
        online_cpus: int,
        power_levels: Sequence[int] = (POWER_LOW, POWER_HIGH),
    ) -> None:
        super().__init__(power_levels)
        self.online_cpus = online_cpus
        self.threads = thread_counts(online_cpus)

    def __iter__(self) -> Iterator[Test]:
        for order, operation, step, (cap_from, cap_to), n_threads in itertools.product(
            *self._leading_axes(), self.threads
        ):
            yield Test(
                capping_order=order,
                operation=operation,
                step=step,
                cap_from=cap_from,
                cap_to=cap_to,
                load_pct=100,
                load_period_us=0,
                n_threads=n_threads,
            )


def build_suite(
    kind: SuiteKind,
    config: CappingConfig,
    online_cpus: int | None = None,
) -> LoadTestSuite | ThreadTestSuite:
    """Build the suite of the given kind using the configured power levels."""
    levels = (config.power_low, config.power_high)
    if kind is SuiteKind.LOAD:
        return LoadTestSuite(power_levels=levels)
    if online_cpus is None:
        msg = "The thread suite needs the agent's online CPU count"
        raise ConfigurationError(msg)
    return ThreadTestSuite(online_cpus, power_levels=levels)
