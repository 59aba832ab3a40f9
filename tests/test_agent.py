# Copyright (c) Syntropy Systems
"""Tests for the load agent: launcher, HTTP API and client."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import pytest
from fastapi.testclient import TestClient

from capping.client import AgentClient
from capping.errors import HardwareCommandError, ProtocolError
from capping.loadgen import Firestarter, run_load_test
from capping.models.api import BiosInfo, LoadTestRequest, ServerInfo, SystemInfo
from capping.models.power import DomainPower, PowerSample
from capping.rapl.counters import RaplCounters
from capping.server import create_app

if TYPE_CHECKING:
    from capping.config import CappingConfig

SAMPLE = PowerSample(
    timestamp=datetime(2023, 5, 9, 14, 24, 36, 500_000, tzinfo=timezone.utc),
    data=[DomainPower(domain="core0", power_watts=90), DomainPower(domain="pkg0", power_watts=140)],
)

SERVER_INFO = ServerInfo(
    system_info=SystemInfo(hostname="node-1", online_cpus=192),
    bios_info=BiosInfo(vendor="Lenovo"),
)


def fake_firestarter(tmp_path: Path, exit_code: int = 0) -> Path:
    """Executable stand-in that records its arguments and exits."""
    script = tmp_path / "firestarter"
    args_file = tmp_path / "args.txt"
    _ = script.write_text(
        f'#!/bin/sh\necho "$@" > {args_file}\nsleep 0.1\nexit {exit_code}\n'
    )
    script.chmod(0o755)
    return script


class TestFirestarter:
    """Tests for the load generator launcher."""

    def test_argv(self) -> None:
        request = LoadTestRequest(runtime_secs=90, load_pct=95, load_period_us=10_000, n_threads=12)
        firestarter = Firestarter("/opt/firestarter", request)
        assert firestarter.argv == [
            "/opt/firestarter", "--quiet",
            "--timeout", "90",
            "--load", "95",
            "--period", "10000",
            "--threads", "12",
        ]

    def test_run_waits_for_exit(self, tmp_path: Path) -> None:
        script = fake_firestarter(tmp_path)
        request = LoadTestRequest(runtime_secs=1, load_pct=100)

        assert Firestarter(str(script), request).run() == 0
        assert (tmp_path / "args.txt").read_text().split() == [
            "--quiet", "--timeout", "1", "--load", "100", "--period", "0", "--threads", "0",
        ]

    def test_nonzero_exit_is_fatal(self, tmp_path: Path) -> None:
        script = fake_firestarter(tmp_path, exit_code=3)
        with pytest.raises(HardwareCommandError, match="status 3"):
            _ = Firestarter(str(script), LoadTestRequest(runtime_secs=1)).run()

    def test_missing_binary_is_fatal(self, tmp_path: Path) -> None:
        with pytest.raises(HardwareCommandError):
            _ = Firestarter(str(tmp_path / "nope"), LoadTestRequest(runtime_secs=1)).run()


class TestRunLoadTest:
    """Tests for the agent-side load run."""

    def test_returns_power_series(
        self, tmp_path: Path, rapl_root: Path, fast_config: CappingConfig
    ) -> None:
        config = replace(fast_config, firestarter_path=str(fake_firestarter(tmp_path)))
        samples = run_load_test(LoadTestRequest(runtime_secs=1), config, RaplCounters(rapl_root))

        assert len(samples) >= 2
        assert [d.domain for d in samples[0].data] == ["core0", "core1", "pkg0", "pkg1"]

    def test_failure_propagates(
        self, tmp_path: Path, rapl_root: Path, fast_config: CappingConfig
    ) -> None:
        config = replace(fast_config, firestarter_path=str(fake_firestarter(tmp_path, exit_code=1)))
        with pytest.raises(HardwareCommandError):
            _ = run_load_test(LoadTestRequest(runtime_secs=1), config, RaplCounters(rapl_root))


class TestAgentApp:
    """Tests for the agent HTTP API."""

    def test_run_test(self) -> None:
        requests: list[LoadTestRequest] = []

        def runner(request: LoadTestRequest) -> list[PowerSample]:
            requests.append(request)
            return [SAMPLE]

        client = TestClient(create_app(load_runner=runner, server_info=lambda: SERVER_INFO))
        response = client.post(
            "/api/run_test",
            json={"runtime_secs": 20, "load_pct": 100, "load_period_us": 0, "n_threads": 0},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["samples"][0]["data"] == [
            {"domain": "core0", "power_watts": 90},
            {"domain": "pkg0", "power_watts": 140},
        ]
        assert requests == [LoadTestRequest(runtime_secs=20)]

    @pytest.mark.parametrize(
        "body",
        [
            {"runtime_secs": 20, "load_pct": 0},
            {"runtime_secs": 20, "load_pct": 101},
            {"runtime_secs": 20, "load_pct": 50, "load_period_us": 10},
        ],
    )
    def test_invalid_load_rejected(self, body: dict[str, int]) -> None:
        client = TestClient(create_app(load_runner=lambda r: [], server_info=lambda: SERVER_INFO))
        assert client.post("/api/run_test", json=body).status_code == 422

    def test_hardware_failure_is_500(self) -> None:
        def runner(request: LoadTestRequest) -> list[PowerSample]:
            msg = "Firestarter exited with status 1"
            raise HardwareCommandError(msg)

        client = TestClient(create_app(load_runner=runner, server_info=lambda: SERVER_INFO))
        response = client.post("/api/run_test", json={"runtime_secs": 1})

        assert response.status_code == 500
        assert response.json() == {
            "detail": "Firestarter exited with status 1",
            "error_code": "HardwareCommandError",
        }

    def test_end_to_end_with_rapl(
        self, tmp_path: Path, rapl_root: Path, fast_config: CappingConfig
    ) -> None:
        config = replace(
            fast_config,
            firestarter_path=str(fake_firestarter(tmp_path)),
            rapl_root=str(rapl_root),
        )
        client = TestClient(create_app(config, server_info=lambda: SERVER_INFO))
        response = client.post("/api/run_test", json={"runtime_secs": 1})

        assert response.status_code == 200
        assert len(response.json()["samples"]) >= 2

    def test_system_info(self) -> None:
        client = TestClient(create_app(load_runner=lambda r: [], server_info=lambda: SERVER_INFO))
        response = client.get("/api/system_info")

        assert response.status_code == 200
        assert response.json()["system_info"]["online_cpus"] == 192

    def test_real_system_info(self) -> None:
        client = TestClient(create_app(load_runner=lambda r: []))
        info = ServerInfo.model_validate(client.get("/api/system_info").json())
        assert info.system_info.online_cpus >= 1

    def test_health(self) -> None:
        client = TestClient(create_app(load_runner=lambda r: []))
        assert client.get("/health").json() == {"status": "healthy"}


def mock_client(handler) -> AgentClient:
    return AgentClient("http://node-1:8000/", transport=httpx.MockTransport(handler))


class TestAgentClient:
    """Tests for the coordinator-side HTTP client."""

    def test_run_load_test(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"samples": [SAMPLE.model_dump(mode="json")]})

        with mock_client(handler) as client:
            samples = client.run_load_test(LoadTestRequest(runtime_secs=20, n_threads=4))

        assert samples == [SAMPLE]
        assert str(seen[0].url) == "http://node-1:8000/api/run_test"
        assert json.loads(seen[0].content) == {
            "runtime_secs": 20,
            "load_pct": 100,
            "load_period_us": 0,
            "n_threads": 4,
        }

    def test_get_server_info(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=SERVER_INFO.model_dump(mode="json"))

        with mock_client(handler) as client:
            assert client.get_server_info() == SERVER_INFO

    def test_server_error_detail(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"detail": "Firestarter exited with status 1"})

        with mock_client(handler) as client, pytest.raises(ProtocolError, match="status 1"):
            _ = client.run_load_test(LoadTestRequest(runtime_secs=1))

    def test_malformed_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"samples": [{"timestamp": "never"}]})

        with mock_client(handler) as client, pytest.raises(ProtocolError):
            _ = client.run_load_test(LoadTestRequest(runtime_secs=1))

    def test_not_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>proxy</html>")

        with mock_client(handler) as client, pytest.raises(ProtocolError):
            _ = client.health()

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            msg = "connection refused"
            raise httpx.ConnectError(msg, request=request)

        with mock_client(handler) as client, pytest.raises(ProtocolError, match="Connection error"):
            _ = client.get_server_info()
