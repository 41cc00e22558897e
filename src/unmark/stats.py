"""Processing statistics and result feedback."""

import time
from datetime import timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table


class ProcessingStats:
    """Track and display per-run processing statistics."""

    def __init__(self, verbose=False, console=None):
        """Initialize statistics tracker.

        Args:
            verbose: List every image in the summary
            console: Rich console to print to
        """
        self.verbose = verbose
        self.console = console or Console()
        self.start_time = time.time()
        self.succeeded = 0
        self.failed = 0
        self.skipped = 0
        self.entries = []

    @property
    def total(self):
        return self.succeeded + self.failed + self.skipped

    def add_result(self, path, result):
        """Record the outcome for one image.

        Args:
            path: Input path
            result: ProcessResult
        """
        if not result.success:
            self.failed += 1
        elif result.skipped:
            self.skipped += 1
        else:
            self.succeeded += 1
        self.entries.append((str(path), result))

    def get_elapsed_time(self):
        """Get formatted elapsed time.

        Returns:
            str: Formatted time (HH:MM:SS)
        """
        elapsed = time.time() - self.start_time
        return str(timedelta(seconds=int(elapsed)))

    def _detail_table(self):
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Image", style="cyan")
        table.add_column("Status")
        table.add_column("Confidence", justify="right", style="blue")
        table.add_column("Message", style="dim")

        for path, result in self.entries:
            if not result.success:
                status = "[red]failed[/red]"
            elif result.skipped:
                status = "[yellow]skipped[/yellow]"
            else:
                status = "[green]ok[/green]"
            table.add_row(path, status, f"{result.confidence * 100:.0f}%", result.message)
        return table

    def display_summary(self):
        """Display processing summary panel."""
        if self.verbose and self.entries:
            self.console.print(self._detail_table())

        table = Table(show_header=False, padding=(0, 1))
        table.add_column("Label", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("[bold]Succeeded:[/bold]", f"{self.succeeded}")
        if self.skipped:
            table.add_row("[bold]Skipped (no watermark):[/bold]", f"[yellow]{self.skipped}[/yellow]")
        if self.failed:
            table.add_row("[bold]Failed:[/bold]", f"[red]{self.failed}[/red]")
        table.add_row("[bold]Time elapsed:[/bold]", self.get_elapsed_time())

        border = "red" if self.failed else "green"
        title = "Completed with errors" if self.failed else "Processing Complete"
        self.console.print(Panel(
            table,
            title=f"[bold {border}]{title}[/bold {border}]",
            border_style=border,
        ))
