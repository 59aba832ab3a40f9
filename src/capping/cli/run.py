# Copyright (c) Syntropy Systems
"""capping run command."""
from __future__ import annotations

import itertools
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console

from capping.bmc.client import BMC
from capping.client import AgentClient
from capping.config import load_config
from capping.coordinator import TestRunCoordinator, run_suite
from capping.errors import CappingError
from capping.suite import SuiteKind, build_suite

if TYPE_CHECKING:
    from capping.models.test import TestResult

console = Console()


def _mean(values: list[int]) -> str:
    if not values:
        return "-"
    return f"{sum(values) / len(values):.0f}W"


def _print_result(result: TestResult) -> None:
    run = result.test_run
    rapl = _mean([s.total_watts("pkg") for s in result.energy_samples])
    bmc = _mean([s.power for s in result.bmc_samples])
    elapsed = (run.end_timestamp - run.start_timestamp).total_seconds()
    console.print(
        f"[green]done[/green] {run.test.describe()} "
        f"[dim]rapl={rapl} bmc={bmc} "
        f"({len(result.energy_samples)}/{len(result.bmc_samples)} samples, {elapsed:.0f}s)[/dim]"
    )


def run(
    kind: SuiteKind = typer.Argument(
        ...,
        help="Which axis the suite varies: load or threads",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config", "-c",
        envvar="CAPPING_CONFIG",
        help="Path to config.yaml",
    ),
    agent_url: str | None = typer.Option(
        None,
        "--agent-url", "-a",
        envvar="CAPPING_AGENT_URL",
        help="Agent base URL (e.g., http://node-1:8000)",
    ),
    limit: int | None = typer.Option(
        None,
        "--limit", "-l",
        min=1,
        help="Run at most this many tests",
    ),
) -> None:
    """Run a capping test suite against the BMC and the remote load agent.

    Any failure stops the whole suite: the cap state on the host is then
    unknown and must be checked by hand.
    """
    try:
        config = load_config(config_file, agent_url=agent_url)
        bmc = BMC.from_config(config)

        with AgentClient(config.agent_url, timeout_margin=config.agent_timeout_margin) as client:
            server_info = client.get_server_info()
            online_cpus = server_info.system_info.online_cpus
            console.print(
                f"[bold]{server_info.system_info.hostname}[/bold] "
                f"({online_cpus} CPUs) via {config.agent_url}"
            )

            test_suite = build_suite(kind, config, online_cpus)
            suite_size = test_suite.count()
            tests = iter(test_suite)
            if limit is not None:
                tests = itertools.islice(tests, limit)
            console.print(
                f"Running {min(suite_size, limit or suite_size)} of {suite_size} {kind.value} tests"
            )

            coordinator = TestRunCoordinator(config, bmc, client)
            report = run_suite(coordinator, tests, server_info, on_result=_print_result)
    except CappingError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("[yellow]Suite aborted; check the BMC cap state before rerunning.[/yellow]")
        raise typer.Exit(1) from e

    elapsed = (report.end_timestamp - report.start_timestamp).total_seconds()
    console.print(
        f"\n[bold]{report.completed} tests[/bold] completed in {elapsed:.0f}s"
        + (f", {report.skipped} skipped" if report.skipped else "")
    )
