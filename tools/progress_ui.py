#!/usr/bin/env python3
"""
Rich Progress UI for Paprika Sync
=================================

Terminal progress for sync passes: one bar for categories, one for recipes,
and a summary table at the end. Plugs into SyncService as its progress
callback:

    with SyncProgressUI() as ui:
        status = service.sync_all(on_progress=ui.on_progress)
    ui.show_summary(status)
"""

import time
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from models import SyncStatus

PAPRIKA_HEADER = """
Paprika Recipe Cache Sync
========================="""


class SyncProgressUI:
    """
    Progress consumer for SyncService.

    Receives SyncStatus snapshots; only the first MAX_DISPLAYED_ERRORS errors
    are printed in the summary.
    """

    MAX_DISPLAYED_ERRORS = 5

    def __init__(self, console: Optional[Console] = None, use_rich: bool = True):
        self.console = console or Console(stderr=True)
        # Bars need a terminal; plain milestone lines otherwise
        self.use_rich = use_rich and self.console.is_terminal
        self.start_time = time.time()
        self._progress: Optional[Progress] = None
        self._category_task = None
        self._recipe_task = None
        self._last_milestone = -1

    def __enter__(self) -> "SyncProgressUI":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        self.start_time = time.time()
        if self.use_rich:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("{task.completed}/{task.total}"),
                TimeElapsedColumn(),
                console=self.console,
            )
            self._progress.start()

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    def on_progress(self, status: SyncStatus) -> None:
        """ProgressCallback: update the bars from a status snapshot."""
        if self._progress is None:
            self._print_milestone(status)
            return

        if status.categories.total:
            if self._category_task is None:
                self._category_task = self._progress.add_task("📂 Categories", total=status.categories.total)
            self._progress.update(
                self._category_task,
                total=status.categories.total,
                completed=status.categories.synced,
            )

        if status.total:
            if self._recipe_task is None:
                self._recipe_task = self._progress.add_task("🍲 Recipes", total=status.total)
            description = "🍲 Recipes" if not status.failed else f"🍲 Recipes ([red]{status.failed} failed[/red])"
            self._progress.update(
                self._recipe_task,
                total=status.total,
                completed=status.processed,
                description=description,
            )

    def _print_milestone(self, status: SyncStatus) -> None:
        """Plain output: one line per 25% of recipes."""
        if not status.total:
            return
        percent = status.processed * 100 // status.total
        milestone = percent // 25
        if milestone > self._last_milestone:
            self._last_milestone = milestone
            self.console.print(f"Progress: {percent}% ({status.processed}/{status.total})")

    def show_summary(self, status: SyncStatus, title: str = "Sync Complete") -> None:
        """Print counts and the first few errors."""
        table = Table(show_header=False, box=None)
        table.add_column(style="bold")
        table.add_column()
        if status.categories.total:
            table.add_row("Categories", f"{status.categories.synced}/{status.categories.total}")
        table.add_row("Recipes", f"{status.synced}/{status.total}")
        if status.failed:
            table.add_row("Failed", f"[red]{status.failed}[/red]")
        skipped = status.total - status.processed
        if skipped:
            table.add_row("Not processed", f"[yellow]{skipped}[/yellow]")
        table.add_row("Time", f"{self.elapsed_time:.1f}s")

        border = "green" if not status.failed and not skipped else "yellow"
        self.console.print(Panel(table, title=title, border_style=border))

        if status.errors:
            self.console.print("[red]Errors:[/red]")
            for error in status.errors[:self.MAX_DISPLAYED_ERRORS]:
                self.console.print(f"  ❌ {escape(error.uid)}: {escape(error.error)}")
            hidden = len(status.errors) - self.MAX_DISPLAYED_ERRORS
            if hidden > 0:
                self.console.print(f"  ... and {hidden} more (see log file)")

    def show_status(self, message: str, style: str = "info") -> None:
        """Show a one-line status message."""
        if style == "error":
            self.console.print(f"[red]Error:[/red] {escape(message)}")
        elif style == "warning":
            self.console.print(f"[yellow]Warning:[/yellow] {escape(message)}")
        else:
            self.console.print(escape(message))
