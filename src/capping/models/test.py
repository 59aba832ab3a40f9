# Copyright (c) Syntropy Systems
"""Test configuration and run records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import Field, model_validator

from .api import ServerInfo
from .base import CappingBaseModel, FrozenModel
from .power import BMCSample, PowerSample


class CappingOrder(str, Enum):
    """Relative sequencing of 'set cap level' and 'toggle cap activation'."""

    LEVEL_BEFORE_ACTIVATE = "level_before_activate"
    LEVEL_AFTER_ACTIVATE = "level_after_activate"
    LEVEL_TO_LEVEL = "level_to_level"
    LEVEL_TO_LEVEL_ACTIVATE = "level_to_level_activate"


class Operation(str, Enum):
    """Cap activation operation requested by a test."""

    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"

    @property
    def opposite(self) -> Operation:
        """The operation with the other polarity."""
        if self is Operation.ACTIVATE:
            return Operation.DEACTIVATE
        return Operation.ACTIVATE


class CapStep(str, Enum):
    """Whether a cap level change is one jump or a ramp of bounded steps."""

    ONE_SHOT = "one_shot"
    STEP = "step"


class Test(FrozenModel):
    """A single capping test configuration."""

    __test__: ClassVar[bool] = False

    capping_order: CappingOrder
    operation: Operation
    step: CapStep
    cap_from: int = Field(ge=0)
    cap_to: int = Field(ge=0)
    load_pct: int = Field(default=100, ge=1, le=100)
    load_period_us: int = Field(default=0, ge=0)
    n_threads: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_load_period(self) -> Test:
        if self.load_period_us != 0 and self.load_period_us < self.load_pct:
            msg = "load_period_us must be 0 or at least load_pct"
            raise ValueError(msg)
        return self

    @property
    def is_cap_neutral(self) -> bool:
        """True when the test would not change the cap level at all."""
        return self.cap_from == self.cap_to

    def describe(self) -> str:
        """One-line human readable summary."""
        return (
            f"{self.capping_order.value}/{self.operation.value}/{self.step.value} "
            f"{self.cap_from}W->{self.cap_to}W load={self.load_pct}% "
            f"period={self.load_period_us}us threads={self.n_threads or 'all'}"
        )


class TestRun(CappingBaseModel):
    """A completed test with its three key timestamps."""

    __test__: ClassVar[bool] = False

    test: Test
    start_timestamp: datetime
    cap_timestamp: datetime
    end_timestamp: datetime


@dataclass
class TestResult:
    """Everything collected for one test: the run, RAPL power and BMC samples."""

    __test__: ClassVar[bool] = False

    test_run: TestRun
    energy_samples: list[PowerSample] = field(default_factory=list)
    bmc_samples: list[BMCSample] = field(default_factory=list)


class SuiteReport(CappingBaseModel):
    """Summary of a whole suite execution."""

    start_timestamp: datetime
    end_timestamp: datetime
    server_info: ServerInfo | None = None
    completed: int = 0
    skipped: int = 0
