# Copyright (c) Syntropy Systems
"""FastAPI application for the capping agent."""

import logging
from collections.abc import Callable
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import CappingConfig
from ..errors import CappingError
from ..loadgen import run_load_test
from ..models.api import (
    ErrorResponse,
    HealthResponse,
    LoadTestRequest,
    LoadTestResponse,
    ServerInfo,
)
from ..models.power import PowerSample
from ..rapl.counters import EnergyCounterSource, RaplCounters
from ..sysinfo import get_server_info

logger = logging.getLogger(__name__)

LoadRunner = Callable[[LoadTestRequest], list[PowerSample]]


def create_app(
    config: Optional[CappingConfig] = None,
    counters: Optional[EnergyCounterSource] = None,
    load_runner: Optional[LoadRunner] = None,
    server_info: Optional[Callable[[], ServerInfo]] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Agent configuration (firestarter path, RAPL location, cadence)
        counters: Energy counter source; discovered from config.rapl_root if omitted
        load_runner: Replaces the firestarter + RAPL load test (for testing)
        server_info: Replaces the host inventory collector (for testing)

    Returns:
        Configured FastAPI application
    """
    config = config or CappingConfig()

    if load_runner is None:
        if counters is None:
            rapl = RaplCounters(config.rapl_root, config.max_energy_path)
            logger.info("RAPL: %d domains under %s", rapl.domain_count(), rapl.root)
            counters = rapl
        energy_source = counters

        def _run_firestarter(request: LoadTestRequest) -> list[PowerSample]:
            return run_load_test(request, config, energy_source)

        load_runner = _run_firestarter

    app = FastAPI(
        title="capping agent",
        description="Runs synthetic load and reports RAPL power",
        version="0.1.0",
    )

    app.state.config = config
    app.state.load_runner = load_runner
    app.state.server_info = server_info or get_server_info

    def get_load_runner(request: Request) -> LoadRunner:
        return request.app.state.load_runner

    @app.exception_handler(CappingError)
    async def capping_error_handler(request: Request, exc: CappingError) -> JSONResponse:
        logger.error("Request %s failed: %s", request.url.path, exc)
        body = ErrorResponse(detail=str(exc), error_code=type(exc).__name__)
        return JSONResponse(status_code=500, content=body.model_dump())

    # Plain def: FastAPI runs these in its threadpool, so a long load run
    # does not block the event loop.

    @app.post("/api/run_test", response_model=LoadTestResponse)
    def run_test(
        request: LoadTestRequest,
        runner: LoadRunner = Depends(get_load_runner),
    ):
        """Run the load generator and return the RAPL power series."""
        logger.info("Run test request: %s", request.model_dump())
        samples = runner(request)
        return LoadTestResponse(samples=samples)

    @app.get("/api/system_info", response_model=ServerInfo)
    def system_info(request: Request):
        """Report host inventory."""
        return request.app.state.server_info()

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    return app
