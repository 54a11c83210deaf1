# src/nodecycler/reporters/console_reporter.py
"""
A reporter that summarizes a cycling run in a table on the console.
"""

import logging
from typing import List

from rich.console import Console
from rich.table import Table

from ..models.cycle import CycleReport, CycleState, DrainState
from .base_reporter import BaseReporter

logger = logging.getLogger(__name__)


class ConsoleReporter(BaseReporter):
    """
    Renders cycle reports to the console using the 'rich' library.
    """

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def report(self, reports: List[CycleReport]):
        if not reports:
            self.console.print("Nothing was cycled.", style="yellow")
            return

        table = Table(title="Node Cycling Summary", header_style="bold magenta", show_lines=True)
        table.add_column("Role", style="cyan")
        table.add_column("Mode", style="cyan")
        table.add_column("Tag", style="white")
        table.add_column("Instance Group", style="white")
        table.add_column("Target Size", justify="right")
        table.add_column("Drained", style="green", justify="right")
        table.add_column("Force-Evicted", style="yellow", justify="right")
        table.add_column("Deleted", style="red", justify="right")
        table.add_column("Zones", style="dim")
        table.add_column("State", style="bold")

        for report in reports:
            forced = sum(1 for state in report.drained.values() if state == DrainState.FORCE_EVICTED)
            zones = ", ".join(f"{zone}={count}" for zone, count in report.zone_distribution.items())
            state_style = "green" if report.state == CycleState.DONE else "red"
            table.add_row(
                report.role.value,
                "resume" if report.resumed else "cycle",
                report.tag or "-",
                str(report.group) if report.group else "-",
                str(report.original_size) if report.original_size is not None else "-",
                str(len(report.drained) - forced),
                str(forced),
                str(len(report.deleted_instances)),
                zones or "-",
                f"[{state_style}]{report.state.value}[/]",
            )

        self.console.print(table)
