# src/nodecycler/cli/main.py
"""
This module is the main entry point for the nodecycler CLI.
"""

import logging

import typer

from ..core.config import config
from . import cycle

# --- Setup Logger ---
logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


app = typer.Typer(
    name="nodecycler",
    help="Replace every node of a Kubernetes role without downtime.",
    add_completion=False,
)


def version_callback(value: bool):
    """
    Prints the version of nodecycler.
    """
    if value:
        from .. import __version__

        typer.echo(f"nodecycler version: {__version__}")
        raise typer.Exit()


@app.command()
def version():
    """
    Show the version of nodecycler.
    """
    from .. import __version__

    typer.echo(f"nodecycler version: {__version__}")


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    """
    nodecycler CLI main entry point.
    """
    pass


app.add_typer(cycle.app, name="cycle")


if __name__ == "__main__":
    app()
