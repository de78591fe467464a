"""Validation output formatting.

Terminal output uses Rich; ``generate_summary`` produces a Markdown report
that can be saved next to a case file.
"""

from collections.abc import Mapping
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sce_pipeline.utils.time import utc_now
from sce_pipeline.validation.models import FieldStatusKind, ValidationResult


class ValidationReporter:
    """Formats and outputs record validation results."""

    STATUS_COLORS = {
        FieldStatusKind.OK: "green",
        FieldStatusKind.WARNING: "yellow",
        FieldStatusKind.ERROR: "red",
        FieldStatusKind.MISSING: "red",
    }

    STATUS_ICONS = {
        FieldStatusKind.OK: "✓",
        FieldStatusKind.WARNING: "!",
        FieldStatusKind.ERROR: "✗",
        FieldStatusKind.MISSING: "✗",
    }

    def __init__(self, console: Console | None = None):
        """Initialize reporter.

        Args:
            console: Rich Console for output. Creates one if not provided.
        """
        self.console = console or Console()

    def report_terminal(self, result: ValidationResult, record_name: str) -> None:
        """Print a field table followed by missing fields, errors and warnings."""
        self.console.print()
        if result.valid:
            self.console.print(
                Panel(f"[green]✓ Record valid:[/green] {record_name}", border_style="green")
            )
        else:
            self.console.print(
                Panel(f"[red]✗ Record invalid:[/red] {record_name}", border_style="red")
            )

        if result.fields:
            table = Table(show_header=True, header_style="bold")
            table.add_column("", width=2)
            table.add_column("Field")
            table.add_column("Value")
            for name, status in result.fields.items():
                color = self.STATUS_COLORS[status.status]
                icon = self.STATUS_ICONS[status.status]
                shown = "(missing)" if status.value is None else str(status.value)
                table.add_row(f"[{color}]{icon}[/{color}]", name, shown)
            self.console.print(table)

        if result.missing_required:
            self.console.print("\n[red bold]MISSING REQUIRED FIELDS:[/red bold]")
            for name in result.missing_required:
                self.console.print(f"  [red]✗[/red] {name}")

        if result.errors:
            self.console.print("\n[red bold]ERRORS:[/red bold]")
            for issue in result.errors:
                self.console.print(f"  [red]✗[/red] {issue.format_short()}")

        if result.warnings:
            self.console.print("\n[yellow bold]WARNINGS:[/yellow bold]")
            for issue in result.warnings:
                self.console.print(f"  [yellow]![/yellow] {issue.format_short()}")

        self.console.print()
        self.console.print(
            f"Summary: {result.count(FieldStatusKind.OK)} ok, "
            f"{result.count(FieldStatusKind.WARNING)} warnings, "
            f"{result.count(FieldStatusKind.ERROR)} errors, "
            f"{len(result.missing_required)} missing"
        )
        if result.valid:
            self.console.print("\n[bold green]Validation: PASSED[/bold green]")
        else:
            self.console.print("\n[bold red]Validation: FAILED[/bold red]")


def generate_summary(record: Mapping[str, Any], result: ValidationResult) -> str:
    """Build a Markdown validation report for ``record``."""
    lines = [
        "# Validation Report",
        f"Generated: {utc_now().isoformat()}",
        "",
        "## Case Information",
        f"- Address: {record.get('address') or 'N/A'}",
        f"- Application ID: {record.get('applicationId') or 'N/A'}",
        f"- Scraped: {record.get('scrapedAt') or 'N/A'}",
        "",
        f"## Result: {'PASSED' if result.valid else 'FAILED'}",
        "",
        "## Fields",
    ]
    for name, status in result.fields.items():
        icon = ValidationReporter.STATUS_ICONS[status.status]
        shown = "(not set)" if status.value is None else status.value
        lines.append(f"### {icon} {name}")
        lines.append(f"**Value:** {shown}")
        lines.append("")

    if result.errors:
        lines.append("## Errors")
        lines.extend(f"- **{e.field}**: {e.message}" for e in result.errors)
        lines.append("")

    if result.warnings:
        lines.append("## Warnings")
        lines.extend(f"- **{w.field}**: {w.message}" for w in result.warnings)
        lines.append("")

    if result.missing_required:
        lines.append("## Missing Required Fields")
        lines.extend(f"- {name}" for name in result.missing_required)

    return "\n".join(lines)
