"""Rich utilities for formatting and display."""

from collections.abc import Iterable

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from .models import CameraFile, DiscoveredService

# Global console instance
console = Console()


def create_progress(transfer: bool = False) -> Progress:
    """
    Create a progress bar with standard columns.

    Args:
        transfer: Show byte counts instead of an item counter

    Returns:
        Progress instance
    """
    counter = DownloadColumn() if transfer else MofNCompleteColumn()
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        counter,
        TimeRemainingColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def create_table(title: str, *columns: str, **kwargs) -> Table:
    """
    Create a table with standard styling.

    Args:
        title: Table title
        *columns: Column names
        **kwargs: Additional Table arguments

    Returns:
        Table instance
    """
    table = Table(title=title, **kwargs)
    for col in columns:
        table.add_column(col)
    return table


def services_table(services: Iterable[DiscoveredService], host: str = "") -> Table:
    """Render a diagnostic port sweep."""
    title = f"Services on {host}" if host else "Services"
    table = create_table(title, "Port", "Service", "Status")
    for service in sorted(services, key=lambda s: s.port):
        status = "[green]open[/green]" if service.reachable else "[dim]closed[/dim]"
        table.add_row(str(service.port), service.label, status)
    return table


def files_table(files: Iterable[CameraFile], title: str = "Camera files") -> Table:
    """Render a camera file listing."""
    table = create_table(title, "#", "Filename", "Type", "Size", "Resolution", "Date")
    for file in files:
        kind = "video" if file.is_video else "image" if file.is_image else file.format.name.lower()
        date = file.parsed_date.strftime("%Y-%m-%d %H:%M") if file.parsed_date else file.capture_date
        size = f"{file.size / 1024:.0f} KB" if file.size else "-"
        resolution = file.resolution if file.width and file.height else "-"
        table.add_row(str(file.handle), file.filename, kind, size, resolution, date)
    return table


__all__ = [
    "console",
    "Console",
    "Progress",
    "Table",
    "create_progress",
    "create_table",
    "files_table",
    "services_table",
]
