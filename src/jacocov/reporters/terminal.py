"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from jacocov.report.models import NormalizedMetric

console = Console()


class CLIReporter:
    """Rich terminal output reporter for coverage runs."""

    def __init__(self) -> None:
        """Initialize the CLI reporter."""
        self.console = console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_jacoco_summary(self, counters: dict[str, tuple[int, int]]) -> None:
        """Print a table of JaCoCo counters (type -> (missed, covered))."""
        table = Table(title="JaCoCo Summary", title_style="bold cyan")
        table.add_column("Counter", style="bold")
        table.add_column("Covered", justify="right")
        table.add_column("Missed", justify="right")
        table.add_column("Coverage", justify="right")

        for counter_type, (missed, covered) in counters.items():
            metric = NormalizedMetric(covered=covered, total=missed + covered)
            if metric.total == 0:
                table.add_row(counter_type, "0", "0", "[dim]-[/dim]")
                continue
            color = self._get_coverage_color(metric.percentage)
            table.add_row(
                counter_type,
                str(covered),
                str(missed),
                f"[{color}]{metric.percentage:.1f}%[/{color}]",
            )

        self.console.print(table)

    def _get_coverage_color(self, percentage: float) -> str:
        """Get a color based on coverage percentage."""
        high_threshold = 80.0
        medium_threshold = 50.0

        if percentage >= high_threshold:
            return "green"
        if percentage >= medium_threshold:
            return "yellow"
        return "red"


reporter = CLIReporter()
