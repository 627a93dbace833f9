"""CLI progress display for sync sessions.

This module provides a Rich-based progress bar fed by the progress events
a SyncSession emits before it processes each pending path.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .sync import SyncProgressState


class SyncProgressDisplay:
    """Rich-based progress display for sync sessions.

    Use as a context manager and pass ``handle_event`` to
    ``SyncSession.subscribe_progress``.
    """

    def __init__(self) -> None:
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def handle_event(self, state: SyncProgressState) -> None:
        """Update the bar for one progress event.

        Args:
            state: Progress event from the session
        """
        if self._progress is None or self._task is None:
            return

        # Events announce the path about to be processed, so the previous
        # ones are complete.
        self._progress.update(
            self._task,
            description=state.message,
            total=state.total,
            completed=state.current - 1,
        )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}", style="bold blue", markup=False),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
            transient=True,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Scanning...", total=None)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
