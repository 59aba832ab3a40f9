# Copyright (c) Syntropy Systems
"""Tests for test suite generation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from capping.config import CappingConfig
from capping.errors import ConfigurationError
from capping.models.test import CappingOrder, CapStep, Operation, Test
from capping.suite import (
    LoadTestSuite,
    SuiteKind,
    ThreadTestSuite,
    _TestSuite,
    build_suite,
    load_percentages,
    power_level_pairs,
    thread_counts,
)

LEADING_AXES = len(CappingOrder) * len(Operation) * len(CapStep) * 2


class TestAxes:
    """Tests for the individual parameter axes."""

    def test_power_level_pairs(self) -> None:
        assert power_level_pairs([200, 580]) == [(200, 580), (580, 200)]

    def test_load_percentages(self) -> None:
        assert load_percentages() == [100, 99, 98, 97, 96, 95, 94, 93, 92, 91, 90]

    def test_thread_counts(self) -> None:
        counts = thread_counts(192)
        assert counts == list(range(192, 181, -1))
        assert len(set(counts)) == 11

    def test_thread_counts_never_reach_zero(self) -> None:
        assert thread_counts(4) == [4, 3, 2, 1]


class TestThreadTestSuite:
    """Tests for the thread-count-varying suite."""

    def test_count(self) -> None:
        suite = ThreadTestSuite(192)
        tests = list(suite)

        assert len(tests) == LEADING_AXES * 11
        assert suite.count() == len(tests)
        assert {t.n_threads for t in tests} == set(range(182, 193))

    def test_full_load(self) -> None:
        assert all(t.load_pct == 100 and t.load_period_us == 0 for t in ThreadTestSuite(8))

    def test_enumeration_order(self) -> None:
        tests = list(ThreadTestSuite(192))

        first = tests[0]
        assert first.capping_order is CappingOrder.LEVEL_BEFORE_ACTIVATE
        assert first.operation is Operation.ACTIVATE
        assert first.step is CapStep.ONE_SHOT
        assert (first.cap_from, first.cap_to) == (200, 580)
        assert first.n_threads == 192

        # Innermost axis varies fastest
        assert [t.n_threads for t in tests[:11]] == list(range(192, 181, -1))
        assert (tests[11].cap_from, tests[11].cap_to) == (580, 200)
        assert tests[22].step is CapStep.STEP
        assert tests[-1].capping_order is CappingOrder.LEVEL_TO_LEVEL_ACTIVATE

    def test_deterministic_and_restartable(self) -> None:
        suite = ThreadTestSuite(64)
        assert list(suite) == list(suite)
        assert list(suite) == list(ThreadTestSuite(64))

    def test_never_cap_neutral(self) -> None:
        assert not any(t.is_cap_neutral for t in ThreadTestSuite(16))

    def test_base_suite_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            _ = _TestSuite()  # type: ignore[abstract]


class TestLoadTestSuite:
    """Tests for the load-varying suite."""

    def test_count(self) -> None:
        tests = list(LoadTestSuite())
        assert len(tests) == LEADING_AXES * 11 * 2

    def test_single_period(self) -> None:
        tests = list(LoadTestSuite(load_periods=[0]))
        assert len(tests) == LEADING_AXES * 11
        assert [t.load_pct for t in tests[:11]] == load_percentages()
        assert all(t.n_threads == 0 for t in tests)


class TestBuildSuite:
    """Tests for suite construction from configuration."""

    def test_uses_configured_power_levels(self) -> None:
        config = CappingConfig(power_low=300, power_high=500)
        tests = list(build_suite(SuiteKind.THREADS, config, online_cpus=32))
        assert {(t.cap_from, t.cap_to) for t in tests} == {(300, 500), (500, 300)}

    def test_thread_suite_needs_cpu_count(self) -> None:
        with pytest.raises(ConfigurationError):
            _ = build_suite(SuiteKind.THREADS, CappingConfig())


class TestTestModel:
    """Tests for Test validation."""

    def _test(self, **kwargs: int) -> Test:
        return Test(
            capping_order=CappingOrder.LEVEL_TO_LEVEL,
            operation=Operation.ACTIVATE,
            step=CapStep.ONE_SHOT,
            cap_from=200,
            cap_to=580,
            **kwargs,
        )

    def test_load_pct_bounds(self) -> None:
        with pytest.raises(ValidationError):
            _ = self._test(load_pct=0)
        with pytest.raises(ValidationError):
            _ = self._test(load_pct=101)

    def test_load_period_must_cover_load(self) -> None:
        assert self._test(load_pct=50, load_period_us=0).load_period_us == 0
        assert self._test(load_pct=50, load_period_us=50).load_period_us == 50
        with pytest.raises(ValidationError):
            _ = self._test(load_pct=50, load_period_us=49)

    def test_immutable(self) -> None:
        test = self._test()
        with pytest.raises(ValidationError):
            test.cap_to = 100  # type: ignore[misc]
