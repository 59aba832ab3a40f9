# Copyright (c) Syntropy Systems
"""capping suite command."""
from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from capping.config import load_config
from capping.errors import CappingError
from capping.suite import SuiteKind, build_suite

console = Console()


def suite(
    kind: SuiteKind = typer.Argument(
        ...,
        help="Which axis the suite varies: load or threads",
    ),
    online_cpus: int | None = typer.Option(
        None,
        "--online-cpus", "-n",
        min=1,
        help="Online CPU count of the host under test (threads suite)",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config", "-c",
        envvar="CAPPING_CONFIG",
        help="Path to config.yaml",
    ),
) -> None:
    """Preview the tests a suite would run, without touching any hardware."""
    try:
        config = load_config(config_file)
        tests = list(build_suite(kind, config, online_cpus))
    except CappingError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"Suite: {kind.value}")
    table.add_column("#", style="dim")
    table.add_column("Order")
    table.add_column("Operation")
    table.add_column("Step")
    table.add_column("Cap (W)")
    table.add_column("Load %")
    table.add_column("Period (us)")
    table.add_column("Threads")

    for i, test in enumerate(tests):
        table.add_row(
            str(i),
            test.capping_order.value,
            test.operation.value,
            test.step.value,
            f"{test.cap_from}->{test.cap_to}",
            str(test.load_pct),
            str(test.load_period_us),
            str(test.n_threads or "all"),
        )

    console.print(table)
    console.print(f"\n[bold]{len(tests)} tests[/bold]")
