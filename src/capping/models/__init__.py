# Copyright (c) Syntropy Systems
"""Data models shared by the coordinator, the monitors and the agent."""

from .api import (
    BiosInfo,
    ErrorResponse,
    HealthResponse,
    LoadTestRequest,
    LoadTestResponse,
    ServerInfo,
    SystemInfo,
)
from .power import (
    BMCSample,
    CapSetting,
    DomainPower,
    EnergyReading,
    EnergySnapshot,
    PowerReading,
    PowerSample,
)
from .test import (
    CapStep,
    CappingOrder,
    Operation,
    SuiteReport,
    Test,
    TestResult,
    TestRun,
)

__all__ = [
    "BMCSample",
    "BiosInfo",
    "CapSetting",
    "CapStep",
    "CappingOrder",
    "DomainPower",
    "EnergyReading",
    "EnergySnapshot",
    "ErrorResponse",
    "HealthResponse",
    "LoadTestRequest",
    "LoadTestResponse",
    "Operation",
    "PowerReading",
    "PowerSample",
    "ServerInfo",
    "SuiteReport",
    "SystemInfo",
    "Test",
    "TestResult",
    "TestRun",
]
