# Copyright (c) Syntropy Systems
"""Main CLI entry point for capping."""

import logging

import typer
from rich.logging import RichHandler

from capping.cli.agent_cmd import agent
from capping.cli.info import info
from capping.cli.run import run
from capping.cli.suite import suite

app = typer.Typer(
    name="capping",
    help=(
        "Power-capping experiments. Drive BMC caps, generate load, "
        "measure what the server draws."
    ),
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


# Register commands
_ = app.command(name="agent")(agent)
_ = app.command()(info)
_ = app.command()(suite)
_ = app.command()(run)


if __name__ == "__main__":
    app()
