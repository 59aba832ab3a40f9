# Copyright (c) Syntropy Systems
"""CLI command for running the capping agent."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from capping.config import load_config
from capping.errors import CappingError

console = Console()


def agent(
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on"),
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="CAPPING_CONFIG",
        help="Path to config.yaml",
    ),
    firestarter: Optional[str] = typer.Option(
        None,
        "--firestarter",
        help="Path to the FIRESTARTER binary",
    ),
):
    """
    Start the load agent on the host under test.

    The agent exposes /api/run_test, which runs FIRESTARTER while sampling
    the RAPL energy counters, and /api/system_info.

    Examples:

        # Bind to all interfaces so the coordinator can reach it
        capping agent --host 0.0.0.0 --port 8000
    """
    import uvicorn

    from capping.server.app import create_app

    try:
        config = load_config(config_file, firestarter_path=firestarter)
        app = create_app(config)
    except CappingError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print("[bold]capping agent[/bold]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Firestarter: {config.firestarter_path}")
    console.print(f"  RAPL: {config.rapl_root}")
    console.print()

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
    )
