# Copyright (c) Syntropy Systems
"""HTTP client for the coordinator to drive the load agent."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar, overload

import httpx
from pydantic import BaseModel, ValidationError
from typing_extensions import Self

from capping.errors import ProtocolError
from capping.models.api import (
    ErrorResponse,
    HealthResponse,
    LoadTestRequest,
    LoadTestResponse,
    ServerInfo,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from capping.models.power import PowerSample

logger = logging.getLogger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)

RUN_TEST_PATH = "/api/run_test"
SYSTEM_INFO_PATH = "/api/system_info"
HEALTH_PATH = "/health"


class AgentClient:
    """HTTP client for the remote load agent.

    Nothing is retried: a load run has side effects on the remote host.
    """

    agent_url: str
    timeout: float
    timeout_margin: float
    _client: httpx.Client

    def __init__(
        self,
        agent_url: str,
        timeout: float = 30.0,
        timeout_margin: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            agent_url: Base URL of the agent (e.g., "http://node-1:8000")
            timeout: Timeout in seconds for short requests
            timeout_margin: Seconds added to a load test's run time for its timeout
            transport: Optional httpx transport (used by tests)

        """
        self.agent_url = agent_url.rstrip("/")
        self.timeout = timeout
        self.timeout_margin = timeout_margin
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Self:
        """Enter the client context and return self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the client context and close the HTTP client."""
        self.close()

    @overload
    def _request(
        self,
        method: str,
        path: str,
        json: Mapping[str, object] | None = None,
        *,
        response_model: type[ResponseModel],
        timeout: float | None = None,
    ) -> ResponseModel:
        ...

    @overload
    def _request(
        self,
        method: str,
        path: str,
        json: Mapping[str, object] | None = None,
        *,
        response_model: None = None,
        timeout: float | None = None,
    ) -> object:
        ...

    def _request(
        self,
        method: str,
        path: str,
        json: Mapping[str, object] | None = None,
        *,
        response_model: type[ResponseModel] | None = None,
        timeout: float | None = None,
    ) -> ResponseModel | object:
        """Make an HTTP request to the agent."""
        url = f"{self.agent_url}{path}"
        try:
            response = self._client.request(
                method=method,
                url=url,
                json=json,
                timeout=timeout if timeout is not None else self.timeout,
            )
            _ = response.raise_for_status()
            data = response.json()
            if response_model is None:
                return data
            return response_model.model_validate(data)
        except httpx.HTTPStatusError as e:
            # Try to get error detail from response
            try:
                detail = ErrorResponse.model_validate(e.response.json()).detail
            except (ValidationError, ValueError):
                detail = str(e)
            msg = f"Agent error: {detail}"
            raise ProtocolError(msg) from e
        except httpx.RequestError as e:
            msg = f"Connection error: {e}"
            raise ProtocolError(msg) from e
        except ValidationError as e:
            msg = f"Invalid response from {url}: {e}"
            raise ProtocolError(msg) from e
        except ValueError as e:
            msg = f"Response from {url} is not JSON: {e}"
            raise ProtocolError(msg) from e

    def run_load_test(self, request: LoadTestRequest) -> list[PowerSample]:
        """Run load on the agent and return its RAPL power series.

        Blocks until the remote load generator finishes.
        """
        logger.info(
            "Agent: run load test for %ds (load=%d%% period=%dus threads=%d)",
            request.runtime_secs,
            request.load_pct,
            request.load_period_us,
            request.n_threads,
        )
        response = self._request(
            "POST",
            RUN_TEST_PATH,
            json=request.model_dump(),
            response_model=LoadTestResponse,
            timeout=request.runtime_secs + self.timeout_margin,
        )
        return response.samples

    def get_server_info(self) -> ServerInfo:
        """Fetch the agent host's inventory."""
        return self._request("GET", SYSTEM_INFO_PATH, response_model=ServerInfo)

    def health(self) -> HealthResponse:
        return self._request("GET", HEALTH_PATH, response_model=HealthResponse)
