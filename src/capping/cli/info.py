# Copyright (c) Syntropy Systems
"""capping info command."""
from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from capping.client import AgentClient
from capping.config import load_config
from capping.errors import CappingError

console = Console()


def info(
    agent_url: str | None = typer.Option(
        None,
        "--agent-url", "-a",
        envvar="CAPPING_AGENT_URL",
        help="Agent base URL (e.g., http://node-1:8000)",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config", "-c",
        envvar="CAPPING_CONFIG",
        help="Path to config.yaml",
    ),
) -> None:
    """Show the inventory of the host running the agent."""
    try:
        config = load_config(config_file, agent_url=agent_url)
        with AgentClient(config.agent_url) as client:
            server_info = client.get_server_info()
    except CappingError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"Agent: {config.agent_url}", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")

    for section in (server_info.system_info, server_info.bios_info):
        for name, value in section.model_dump().items():
            table.add_row(name.replace("_", " "), str(value))

    console.print(table)
