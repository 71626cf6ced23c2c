"""
ConsoleUI - Rich-based console interface.

Renders run summaries, persistence plans and journal history. Errors and
warnings go to stderr and are never silenced by quiet mode.
"""

from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..protocol.parameter import Parameter
from ..protocol.records import ChangeRecord, Outcome, RunSummary
from ..protocol.artifacts import ArtifactResult, ArtifactStatus, PersistencePlan

OUTCOME_STYLES = {
    Outcome.APPLIED: "green",
    Outcome.ALREADY_MATCHED: "dim green",
    Outcome.UNSUPPORTED: "dim",
    Outcome.WOULD_CHANGE: "yellow",
    Outcome.DENIED: "bold red",
    Outcome.UNVERIFIED: "bold red",
    Outcome.UNREADABLE: "bold red",
}

STATUS_STYLES = {
    ArtifactStatus.INSTALLED: "green",
    ArtifactStatus.UNCHANGED: "dim green",
    ArtifactStatus.STALE: "yellow",
    ArtifactStatus.MISSING: "yellow",
    ArtifactStatus.REMOVED: "green",
    ArtifactStatus.WOULD_REMOVE: "yellow",
    ArtifactStatus.ABSENT: "dim",
    ArtifactStatus.FAILED: "bold red",
}


def _value(value: Optional[str]) -> str:
    return "-" if value is None else value


class ConsoleUI:
    """
    Rich console interface for hosttune.
    """

    def __init__(
        self,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def print(self, *args, **kwargs):
        """Print to console."""
        if self.quiet:
            return
        self.console.print(*args, **kwargs)

    def print_header(self, title: str):
        """Print a section header."""
        if self.quiet:
            return
        self.console.print()
        self.console.rule(f"[bold blue]{title}[/]")

    def print_banner(self):
        """Print application banner."""
        if self.quiet:
            return

        banner = f"""
[bold cyan]hosttune[/] [dim]v{__version__}[/]
[dim]Idempotent host tuning with journal and rollback[/]
        """
        self.console.print(Panel(banner.strip(), border_style="cyan"))

    def print_json(self, data: Dict[str, Any]):
        """Machine-readable output (not affected by quiet)."""
        self.console.print_json(data=data)

    def print_warning(self, message: str):
        """Display warning message on stderr."""
        self.err_console.print(f"[bold yellow]Warning:[/] {message}")

    def print_error(self, message: str, exception: Optional[Exception] = None):
        """Display error message on stderr."""
        self.err_console.print(f"[bold red]Error:[/] {message}")
        if exception:
            self.err_console.print(f"[dim]{type(exception).__name__}: {exception}[/]")

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def print_record(self, record: ChangeRecord):
        """One progress line as a record is produced."""
        if self.quiet:
            return
        style = OUTCOME_STYLES.get(record.outcome, "white")
        line = f"  [{style}]{record.outcome.value:<15}[/] {record.parameter_id}"
        if record.detail:
            line += f" [dim]{record.detail}[/]"
        self.console.print(line)

    def _records_table(self, records: List[ChangeRecord], title: str) -> Table:
        table = Table(title=title, title_justify="left")
        table.add_column("Parameter", no_wrap=True)
        table.add_column("Outcome", overflow="fold")
        table.add_column("Before", justify="right", overflow="fold")
        table.add_column("Requested", justify="right", overflow="fold")
        table.add_column("After", justify="right", overflow="fold")
        table.add_column("Detail", style="dim", overflow="fold")

        for record in records:
            style = OUTCOME_STYLES.get(record.outcome, "white")
            table.add_row(
                record.parameter_id,
                f"[{style}]{record.outcome.value}[/]",
                _value(record.observed_before),
                _value(record.requested_value),
                _value(record.observed_after),
                record.detail,
            )
        return table

    def print_run_summary(self, summary: RunSummary):
        """
        Per-parameter outcome table, with failures called out separately.

        Failures are also echoed to stderr in quiet mode so a boot-time run
        leaves a trace in the journal of the service manager.
        """
        failures = summary.failures
        for warning in summary.warnings:
            self.print_warning(warning)

        if self.quiet:
            for record in failures:
                self.print_warning(f"{record.parameter_id}: {record.outcome.value} {record.detail}".rstrip())
            return

        title = f"{summary.mode}{' (dry run)' if summary.dry_run else ''}"
        self.print_header(f"Run Summary: {title}")
        self.console.print(self._records_table(summary.records, "Outcomes"))

        counts = {k: v for k, v in summary.counts().items() if v}
        self.console.print(
            "  " + ", ".join(
                f"[{OUTCOME_STYLES[Outcome(k)]}]{v} {k}[/]" for k, v in counts.items()
            )
            if counts else "  [dim]no parameters selected[/]"
        )

        if failures:
            self.console.print()
            self.console.print(self._records_table(failures, f"[bold red]{len(failures)} need attention[/]"))
        else:
            self.console.print()
            self.console.print("[green]:heavy_check_mark: No failures[/]")

    # =========================================================================
    # Persistence
    # =========================================================================

    def print_plan(self, plan: PersistencePlan):
        """Artifacts to install plus parameters that will not survive reboot."""
        if self.quiet:
            for marker in plan.no_mechanism:
                self.print_warning(f"{marker.parameter_id} will not survive reboot: {marker.reason}")
            return

        self.print_header("Persistence Plan")

        if plan.artifacts:
            table = Table(title="Artifacts", title_justify="left")
            table.add_column("Id", no_wrap=True)
            table.add_column("Path", overflow="fold")
            table.add_column("Parameters", justify="right")
            for artifact in plan.artifacts:
                table.add_row(artifact.id, artifact.path, str(len(artifact.parameter_ids)))
            self.console.print(table)
        else:
            self.console.print("[dim]No artifacts needed[/]")

        if plan.natively_durable:
            self.console.print()
            self.console.print("[bold]Already durable:[/]")
            for marker in plan.natively_durable:
                self.console.print(f"  [green]:heavy_check_mark:[/] {marker.parameter_id} [dim]{marker.reason}[/]")

        if plan.no_mechanism:
            self.console.print()
            self.console.print("[bold yellow]Will not survive reboot:[/]")
            for marker in plan.no_mechanism:
                self.console.print(f"  [yellow]![/] {marker.parameter_id} [dim]{marker.reason}[/]")

    def print_artifact_content(self, plan: PersistencePlan):
        """Full text of each planned artifact."""
        if self.quiet:
            return
        for artifact in plan.artifacts:
            self.console.print()
            self.console.print(Panel(artifact.content.rstrip(), title=artifact.path, border_style="dim"))

    def print_artifact_results(self, results: List[ArtifactResult], title: str = "Artifacts"):
        """Per-artifact status, with activation warnings."""
        for result in results:
            for warning in result.warnings:
                self.print_warning(f"{result.artifact_id}: {warning}")
            if result.status == ArtifactStatus.FAILED:
                self.print_error(f"{result.artifact_id}: {result.detail}")

        if self.quiet:
            return

        self.print_header(title)
        if not results:
            self.console.print("[dim]Nothing to do[/]")
            return

        table = Table(show_header=True, box=None)
        table.add_column("Id", no_wrap=True)
        table.add_column("Status", overflow="fold")
        table.add_column("Path", overflow="fold")
        table.add_column("Detail", style="dim", overflow="fold")
        for result in results:
            style = STATUS_STYLES.get(result.status, "white")
            table.add_row(result.artifact_id, f"[{style}]{result.status.value}[/]", result.path, result.detail)
        self.console.print(table)

    # =========================================================================
    # Listings
    # =========================================================================

    def print_history(self, records: List[ChangeRecord]):
        """Journal records, oldest first."""
        if self.quiet:
            return

        self.print_header("History")
        if not records:
            self.console.print("[dim]Journal is empty[/]")
            return

        table = Table(box=None)
        table.add_column("Time", style="dim", overflow="fold")
        table.add_column("Mode", overflow="fold")
        table.add_column("Parameter", no_wrap=True)
        table.add_column("Outcome", overflow="fold")
        table.add_column("Change", overflow="fold")
        for record in records:
            style = OUTCOME_STYLES.get(record.outcome, "white")
            table.add_row(
                record.timestamp,
                record.mode,
                record.parameter_id,
                f"[{style}]{record.outcome.value}[/]",
                f"{_value(record.observed_before)} -> {_value(record.observed_after)}",
            )
        self.console.print(table)

    def print_parameters(self, parameters: List[Parameter]):
        """Registry listing."""
        if self.quiet:
            return

        self.print_header("Parameters")
        table = Table(box=None)
        table.add_column("Id", no_wrap=True)
        table.add_column("Category", style="dim", overflow="fold")
        table.add_column("Target", overflow="fold")
        table.add_column("Desired", justify="right", overflow="fold")
        table.add_column("Default", justify="right", overflow="fold")
        table.add_column("Persistence", style="dim", overflow="fold")
        for parameter in parameters:
            table.add_row(
                parameter.id,
                parameter.category.value,
                parameter.location,
                parameter.desired_value,
                parameter.default_value,
                parameter.persistence.value
                if parameter.persistence.value != "none" else parameter.volatility.value,
            )
        self.console.print(table)
        self.console.print(f"[dim]{len(parameters)} parameters[/]")
