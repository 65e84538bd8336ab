from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from sqlmetrics.models import CollectionReport

custom_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "critical": "bold white on red",
    "success": "bold green",
})

# Metrics go to stdout; everything human-facing goes to stderr.
console = Console(theme=custom_theme, stderr=True)

def print_success(message: str) -> None:
    console.print(f"[success]✔ {message}[/success]")

def print_error(message: str) -> None:
    console.print(f"[error]✘ {message}[/error]")

def print_report(report: CollectionReport) -> None:
    """Summarizes a cycle and lists failed tasks."""
    failed = report.errors
    summary = (
        f"Cycle {report.cycle_id}: {report.task_count} tasks, "
        f"{report.emitted} records, {len(failed)} errors"
    )
    if not failed:
        print_success(summary)
        return

    console.print(f"[warning]{summary}[/warning]")
    table = Table(show_header=True, header_style="bold red", box=None)
    table.add_column("Server", style="cyan")
    table.add_column("Query", style="magenta")
    table.add_column("Severity")
    table.add_column("Code", style="yellow")
    table.add_column("Message", style="dim")
    for error in failed:
        severity = error.severity.value
        table.add_row(
            escape(error.server),
            error.query_id,
            f"[{severity.lower()}]{severity}[/{severity.lower()}]",
            error.error_code.value,
            escape(error.message),
        )
    console.print(table)
