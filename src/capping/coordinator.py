# Copyright (c) Syntropy Systems
"""Test run coordination: sequencing cap changes, load and measurement.

For each test the coordinator establishes the cap preconditions, starts the
BMC monitor, sends the remote load request and sleeps through the warmup
concurrently, applies the cap transition when its own warmup sleep expires,
then waits for the remote power series and stops the BMC monitor.

The moment the cap is applied is derived purely from local elapsed time. The
agent starts its load when the request arrives, so network latency between the
two hosts shifts the cap relative to the load; this is not compensated.
"""
from __future__ import annotations

import logging
import math
import time
from enum import Enum
from threading import Thread
from typing import TYPE_CHECKING, ClassVar, Protocol

from capping.bmc.monitor import BMCMonitor
from capping.errors import ConfigurationError
from capping.models.api import LoadTestRequest
from capping.models.power import utc_now
from capping.models.test import (
    CappingOrder,
    CapStep,
    Operation,
    SuiteReport,
    TestResult,
    TestRun,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from capping.bmc.client import BMCInterface
    from capping.config import CappingConfig
    from capping.models.api import ServerInfo
    from capping.models.power import PowerSample
    from capping.models.test import Test

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    """States a single test run moves through."""

    IDLE = "idle"
    SETTING_PRECONDITIONS = "setting_preconditions"
    WARMUP = "warmup"
    CAPPING = "capping"
    AWAITING_LOAD_COMPLETION = "awaiting_load_completion"
    COLLECTING = "collecting"
    DONE = "done"


class LoadAgent(Protocol):
    """The remote side: runs load and returns the RAPL power series."""

    def run_load_test(self, request: LoadTestRequest) -> list[PowerSample]:
        ...


class RemoteLoadRun:
    """A remote load request in flight on a daemon thread.

    Only the success path joins the thread. After a failure it is abandoned
    and does not keep the interpreter alive.
    """

    _thread: Thread
    _samples: list[PowerSample] | None
    _error: Exception | None

    def __init__(self, agent: LoadAgent, request: LoadTestRequest) -> None:
        self._samples = None
        self._error = None
        self._thread = Thread(
            target=self._call,
            args=(agent, request),
            name="load-agent",
            daemon=True,
        )
        self._thread.start()

    def _call(self, agent: LoadAgent, request: LoadTestRequest) -> None:
        try:
            self._samples = agent.run_load_test(request)
        except Exception as exc:
            self._error = exc

    def done(self) -> bool:
        return not self._thread.is_alive()

    def result(self) -> list[PowerSample]:
        """Join the request and return its samples, re-raising its failure."""
        self._thread.join()
        if self._error is not None:
            raise self._error
        return self._samples or []


def ramp_levels(cap_from: int, cap_to: int, step_size: int) -> list[int]:
    """Cap levels visited when ramping from cap_from to cap_to.

    Moves by step_size while more than one step remains, then lands exactly
    on cap_to.

    >>> ramp_levels(580, 200, 100)
    [480, 380, 280, 200]
    """
    if step_size <= 0:
        msg = "step_size must be positive"
        raise ConfigurationError(msg)

    direction = 1 if cap_to > cap_from else -1
    levels: list[int] = []
    level = cap_from
    while abs(cap_to - level) > step_size:
        level += direction * step_size
        levels.append(level)
    levels.append(cap_to)
    return levels


def ramp_budget_secs(test: Test, config: CappingConfig) -> int:
    """Extra load time needed for a stepped cap change."""
    if test.step is not CapStep.STEP:
        return 0
    n_steps = math.ceil(abs(test.cap_to - test.cap_from) / config.step_size_watts)
    return math.ceil(n_steps * config.step_interval_secs)


def load_test_request(test: Test, config: CappingConfig) -> LoadTestRequest:
    """The remote load request for test: warmup + test time + any ramp budget."""
    return LoadTestRequest(
        runtime_secs=config.warmup_secs + config.test_time_secs + ramp_budget_secs(test, config),
        load_pct=test.load_pct,
        load_period_us=test.load_period_us,
        n_threads=test.n_threads,
    )


class TestRunCoordinator:
    """Runs one test at a time against a BMC and a remote load agent.

    Any failure propagates unchanged. Monitors are cancelled and their data
    discarded; the cap state on the host is then unknown, so callers must not
    carry on with further tests.
    """

    __test__: ClassVar[bool] = False

    config: CappingConfig
    bmc: BMCInterface
    agent: LoadAgent
    phase: RunPhase
    _sleep: Callable[[float], None]
    _clock: Callable[[], datetime]

    def __init__(
        self,
        config: CappingConfig,
        bmc: BMCInterface,
        agent: LoadAgent,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        self.bmc = bmc
        self.agent = agent
        self.phase = RunPhase.IDLE
        self._sleep = sleep
        self._clock = clock

    def _enter(self, phase: RunPhase) -> None:
        logger.debug("Coordinator: %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    # --- BMC writes ---

    def _set_level(self, watts: int, *, settle: bool = False) -> None:
        self.bmc.set_cap_power_level(watts)
        if settle:
            self._sleep(self.config.bmc_settle_secs)

    def _set_capping(self, operation: Operation, *, settle: bool = False) -> None:
        self.bmc.set_capping(operation)
        if settle:
            self._sleep(self.config.bmc_settle_secs)

    def set_initial_conditions(self, test: Test) -> None:
        """Put the cap level and activation into the state required before load starts."""
        order = test.capping_order
        if order is CappingOrder.LEVEL_BEFORE_ACTIVATE:
            # The test toggles activation later, so start from the other polarity
            self._set_level(test.cap_to, settle=True)
            self._set_capping(test.operation.opposite, settle=True)
        elif order is CappingOrder.LEVEL_AFTER_ACTIVATE:
            self._set_level(test.cap_from, settle=True)
            self._set_capping(test.operation, settle=True)
        elif order in (CappingOrder.LEVEL_TO_LEVEL, CappingOrder.LEVEL_TO_LEVEL_ACTIVATE):
            self._set_level(test.cap_from, settle=True)
            self._set_capping(Operation.ACTIVATE, settle=True)
        else:
            msg = f"Unknown capping order: {order}"
            raise ConfigurationError(msg)

    def step_cap_level(self, cap_from: int, cap_to: int) -> list[int]:
        """Ramp the cap level in fixed steps, blocking until the final level is set."""
        levels = ramp_levels(cap_from, cap_to, self.config.step_size_watts)
        for i, level in enumerate(levels):
            if i:
                self._sleep(self.config.step_interval_secs)
            self._set_level(level)
        return levels

    def apply_cap(self, test: Test) -> None:
        """Perform the test's cap transition."""
        order = test.capping_order
        if order is CappingOrder.LEVEL_BEFORE_ACTIVATE:
            self._set_capping(test.operation)
        elif order is CappingOrder.LEVEL_AFTER_ACTIVATE:
            if test.step is CapStep.STEP:
                _ = self.step_cap_level(test.cap_from, test.cap_to)
            else:
                self._set_level(test.cap_to)
        elif order is CappingOrder.LEVEL_TO_LEVEL:
            self._set_level(test.cap_to)
        elif order is CappingOrder.LEVEL_TO_LEVEL_ACTIVATE:
            self._set_level(test.cap_to)
            self._set_capping(Operation.ACTIVATE)
        else:
            msg = f"Unknown capping order: {order}"
            raise ConfigurationError(msg)

    def run(self, test: Test) -> TestResult:
        """Run a single test end to end."""
        if test.is_cap_neutral:
            msg = f"Cap-neutral test reached the coordinator: {test.describe()}"
            raise ConfigurationError(msg)

        logger.info("Test: %s", test.describe())
        self._enter(RunPhase.SETTING_PRECONDITIONS)
        self.set_initial_conditions(test)

        request = load_test_request(test, self.config)
        monitor = BMCMonitor(
            self.bmc,
            inter_command_delay=self.config.bmc_inter_command_secs,
            poll_interval=self.config.bmc_poll_interval_secs,
        )
        start_timestamp = self._clock()
        monitor.start()
        try:
            self._enter(RunPhase.WARMUP)
            load = RemoteLoadRun(self.agent, request)
            self._sleep(self.config.warmup_secs)

            # Don't touch the cap if the remote side has already failed
            if load.done():
                _ = load.result()

            self._enter(RunPhase.CAPPING)
            cap_timestamp = self._clock()
            self.apply_cap(test)

            self._enter(RunPhase.AWAITING_LOAD_COMPLETION)
            energy_samples = load.result()

            self._enter(RunPhase.COLLECTING)
            bmc_samples = monitor.stop()
            end_timestamp = self._clock()
        except BaseException:
            logger.error("Test aborted during %s: %s", self.phase.value, test.describe())
            monitor.cancel()
            self._enter(RunPhase.IDLE)
            raise

        self._enter(RunPhase.DONE)
        logger.info(
            "Test complete: %d RAPL samples, %d BMC samples",
            len(energy_samples),
            len(bmc_samples),
        )

        test_run = TestRun(
            test=test,
            start_timestamp=start_timestamp,
            cap_timestamp=cap_timestamp,
            end_timestamp=end_timestamp,
        )
        return TestResult(
            test_run=test_run,
            energy_samples=energy_samples,
            bmc_samples=bmc_samples,
        )


def run_suite(
    coordinator: TestRunCoordinator,
    tests: Iterable[Test],
    server_info: ServerInfo | None = None,
    on_result: Callable[[TestResult], None] | None = None,
) -> SuiteReport:
    """Run every test in order. The first failure aborts the whole suite."""
    start_timestamp = utc_now()
    completed = 0
    skipped = 0

    for test in tests:
        if test.is_cap_neutral:
            logger.warning("Skipping cap-neutral test: %s", test.describe())
            skipped += 1
            continue

        result = coordinator.run(test)
        completed += 1
        if on_result is not None:
            on_result(result)

    return SuiteReport(
        start_timestamp=start_timestamp,
        end_timestamp=utc_now(),
        server_info=server_info,
        completed=completed,
        skipped=skipped,
    )
