# Copyright (c) Syntropy Systems
"""Pydantic models for agent API requests and responses."""

from __future__ import annotations

from pydantic import Field, model_validator

from .base import CappingBaseModel
from .power import PowerSample


class LoadTestRequest(CappingBaseModel):
    """Request to run the load generator while metering energy."""

    runtime_secs: int = Field(ge=0)
    load_pct: int = Field(default=100, ge=1, le=100)
    load_period_us: int = Field(default=0, ge=0)
    n_threads: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_load_period(self) -> LoadTestRequest:
        if self.load_period_us != 0 and self.load_period_us < self.load_pct:
            msg = "load_period_us must be 0 or at least load_pct"
            raise ValueError(msg)
        return self


class LoadTestResponse(CappingBaseModel):
    """Power samples derived from the agent's energy counters."""

    samples: list[PowerSample] = Field(default_factory=list)


class SystemInfo(CappingBaseModel):
    """Host inventory reported by the agent."""

    hostname: str
    model: str = "unknown"
    os: str = "unknown"
    manufacturer: str = "unknown"
    cpu_version: str = "unknown"
    online_cpus: int = Field(ge=1)
    min_mhz: int = 0
    max_mhz: int = 0
    threads_per_core: int = 0
    cores_per_socket: int = 0
    n_sockets: int = 0


class BiosInfo(CappingBaseModel):
    """BIOS details reported by the agent."""

    vendor: str = "unknown"
    version: str = "unknown"
    revision: str = "unknown"
    release_date: str = "unknown"


class ServerInfo(CappingBaseModel):
    """Response from the agent's system info endpoint."""

    system_info: SystemInfo
    bios_info: BiosInfo = Field(default_factory=BiosInfo)


class ErrorResponse(CappingBaseModel):
    """Error response."""

    detail: str
    error_code: str | None = None


class HealthResponse(CappingBaseModel):
    """Health check response."""

    status: str
