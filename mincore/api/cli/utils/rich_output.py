"""Rich-based output formatting utilities for mincore CLI commands."""

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mincore.core.models import Splinter


class RichOutputFormatter:
    """Terminal UI formatter using Rich library."""

    def __init__(self, verbose: bool = False):
        """Initialize Rich output formatter.

        Args:
            verbose: Whether to enable verbose output
        """
        self.verbose = verbose
        self.console = Console()

    def info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[blue][INFO][/blue] {message}")

    def success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green][SUCCESS][/green] {message}")

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow][WARN][/yellow] {message}")

    def error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red][ERROR][/red] {message}", style="red")

    def verbose_info(self, message: str) -> None:
        """Print a verbose info message if verbose mode is enabled."""
        if self.verbose:
            self.console.print(f"[cyan][DEBUG][/cyan] {message}")

    def startup_info(self, version: str, database: str, config: Any) -> None:
        """Display startup information in a styled panel."""
        info_table = Table.grid(padding=(0, 2))
        info_table.add_column(style="cyan")
        info_table.add_column()

        info_table.add_row("Version:", f"[green]{version}[/green]")
        info_table.add_row("Database:", f"[magenta]{database}[/magenta]")
        info_table.add_row("Lookup:", f"[yellow]{config.lookup.provider}[/yellow]")
        info_table.add_row(
            "Volume cap:",
            f"G={config.lookup.volume_cap}, P={config.mirror.buffer}",
        )
        info_table.add_row("Crawler:", f"[blue]{config.mirror.crawler}[/blue]")

        panel = Panel(
            info_table,
            title="[bold cyan]mincore[/bold cyan]",
            border_style="cyan",
            padding=(1, 2),
        )
        self.console.print(panel)

    def metrics_panel(self, metrics: dict[str, Any], elapsed: float) -> None:
        """Display crawl metrics in a styled panel."""
        summary_table = Table.grid(padding=(0, 2))
        summary_table.add_column(style="cyan")
        summary_table.add_column()

        summary_table.add_row("Remote calls:", f"[green]{metrics.get('remote_calls', 0)}[/green]")
        summary_table.add_row(
            "Consistent:", f"[blue]{metrics.get('consistent_queries', 0)}[/blue]"
        )
        summary_table.add_row(
            "Truncated:", f"[yellow]{metrics.get('truncated_queries', 0)}[/yellow]"
        )
        summary_table.add_row("Retried:", f"[yellow]{metrics.get('failed_queries', 0)}[/yellow]")
        if metrics.get("blocked_queries", 0) > 0:
            summary_table.add_row("Blocked:", f"[red]{metrics['blocked_queries']}[/red]")
        if metrics.get("lodis_entries", 0) > 0:
            summary_table.add_row(
                "LODIS entries:", f"[magenta]{metrics['lodis_entries']}[/magenta]"
            )
        summary_table.add_row("Iterations:", f"{metrics.get('iterations', 0)}")
        summary_table.add_row(
            "Pause / response:",
            f"{metrics.get('pause_time', 0.0):.2f}s / {metrics.get('response_time', 0.0):.2f}s",
        )
        summary_table.add_row("Time:", f"[cyan]{elapsed:.2f}s[/cyan]")

        panel = Panel(
            summary_table,
            title="[bold green]Crawl Metrics[/bold green]",
            border_style="green",
            padding=(1, 2),
        )
        self.console.print(panel)

    def entries_table(self, entries: list[dict[str, Any]], columns: list[str]) -> None:
        """Display mirrored entries."""
        table = Table(title=f"{len(entries)} entries")
        for column in columns:
            table.add_column(column, style="cyan" if column == columns[0] else None)
        for entry in entries:
            table.add_row(*[str(entry.get(c) or "") for c in columns])
        self.console.print(table)

    def splinters_table(self, splinters: list[Splinter]) -> None:
        """Display a partitioning."""
        table = Table(title=f"{len(splinters)} splinters")
        table.add_column("field", style="cyan")
        table.add_column("start")
        table.add_column("end")
        table.add_column("lodis", style="magenta")
        table.add_column("amount", justify="right", style="green")
        for s in splinters:
            lodis = f"[{s.lodis_start!r}, {s.lodis_end!r})" if s.is_lodis else ""
            table.add_row(s.field, repr(s.start), repr(s.end), lodis, str(s.amount))
        self.console.print(table)


def format_stats(stats: Any) -> dict[str, Any]:
    """Convert stats object to dictionary for display."""
    if hasattr(stats, "to_dict"):
        return stats.to_dict()
    if hasattr(stats, "__dict__"):
        return stats.__dict__
    return stats if isinstance(stats, dict) else {}
