# src/nodecycler/cli/cycle.py
"""
Cycle command for the nodecycler CLI.

Validates the flags, builds the orchestrator and runs it to completion. The
last line printed on success is SUCCESS_MARKER, for scripts that watch the
outcome of a run.
"""

import asyncio
import logging
import traceback
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from ..core.exceptions import ConfigurationError, NodeCyclerError
from ..core.factory import get_orchestrator
from ..core.orchestrator import CyclingOrchestrator
from ..models.cycle import CycleReport
from ..models.node import Role
from ..reporters.console_reporter import ConsoleReporter
from .utils import add_log_file, build_run_config

logger = logging.getLogger(__name__)

SUCCESS_MARKER = "NODE CYCLING COMPLETE"

app = typer.Typer(name="cycle", help="Cycle the nodes of one role, or of both roles in turn.")


async def _run(orchestrator: CyclingOrchestrator) -> List[CycleReport]:
    try:
        return await orchestrator.run()
    finally:
        await orchestrator.close()


@app.callback(invoke_without_command=True)
def cycle(
    ctx: typer.Context,
    context: Annotated[Optional[str], typer.Option("--context", help="kubeconfig context of the cluster.")] = None,
    project: Annotated[Optional[str], typer.Option("--project", help="GCP project owning the instance groups.")] = None,
    role: Annotated[
        Optional[Role], typer.Option("--role", help="Role to cycle. Both roles, masters first, when omitted.")
    ] = None,
    resume: Annotated[
        Optional[str], typer.Option("--resume", help="Retirement tag of an earlier run whose nodes still need draining.")
    ] = None,
    drain_timeout: Annotated[
        Optional[int], typer.Option("--drain-timeout", help="Seconds to wait for a node to drain before force-deleting pods.")
    ] = None,
    poll_interval: Annotated[
        Optional[float], typer.Option("--poll-interval", help="Seconds between convergence checks.")
    ] = None,
    poll_deadline: Annotated[
        Optional[float], typer.Option("--poll-deadline", help="Give up a convergence wait after this many seconds.")
    ] = None,
    log_file: Annotated[Optional[Path], typer.Option("--log-file", help="Also write logs to this file.")] = None,
    summary: Annotated[bool, typer.Option("--summary/--no-summary", help="Print a summary table at the end.")] = True,
) -> None:
    """
    Replace every node of a role: scale up, drain the old nodes, delete them.
    """
    if ctx.invoked_subcommand is not None:
        return

    if log_file:
        add_log_file(log_file)

    try:
        run = build_run_config(context, project, role, resume, drain_timeout, poll_interval, poll_deadline)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    logger.info("🚀 Starting node cycling (project=%s, roles=%s).", run.project, [r.value for r in run.roles])
    try:
        orchestrator = get_orchestrator(run)
        reports = asyncio.run(_run(orchestrator))
    except NodeCyclerError as e:
        logger.error("❌ Node cycling failed: %s", e)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.info("🛑 Interrupted. Labeled nodes keep their retirement tag for --resume.")
        raise typer.Exit(code=130)
    except Exception as e:
        logger.error("❌ An unexpected error occurred: %s", e)
        logger.error("Node cycling failed: %s", traceback.format_exc())
        raise typer.Exit(code=1)

    if summary:
        ConsoleReporter().report(reports)
    typer.echo(SUCCESS_MARKER)
