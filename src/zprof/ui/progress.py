"""progress display for archive and uninstall operations."""

import sys
from contextlib import contextmanager
from typing import Callable, Optional
from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    DownloadColumn,
    TransferSpeedColumn,
    TimeRemainingColumn,
    TaskID,
)


class ProgressManager:
    """central manager for progress bars and spinners."""

    def __init__(self, console: Optional[Console] = None, enabled: Optional[bool] = None):
        """
        args:
            console: optional rich console instance. if not provided, creates new one.
            enabled: force progress on or off; defaults to whether stdout is a terminal
        """
        self.console = console or Console()
        self._enabled = self._should_show_progress() if enabled is None else enabled

    def _should_show_progress(self) -> bool:
        """returns false in non-interactive environments (ci/cd, piped output)."""
        return sys.stdout.isatty() and not sys.stdout.closed

    @contextmanager
    def spinner(self, description: str, transient: bool = True):
        """
        indeterminate spinner for unknown-duration steps.

        yields:
            task id for the spinner, or None when progress is disabled
        """
        if not self._enabled:
            yield None
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=transient,
        ) as progress:
            task_id = progress.add_task(description, total=None)
            yield task_id

    @contextmanager
    def archive_progress(self, description: str):
        """
        byte-count progress bar for archive writes.

        yields:
            a callback taking (done_bytes, total_bytes), suitable as the
            codec's on_progress observer
        """
        if not self._enabled:
            progress = _DummyProgress()
            task_id = progress.add_task(description)
            yield _observer(progress, task_id)
            return

        progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=True,
        )
        task_id = progress.add_task(description, total=None)
        observer = _observer(progress, task_id)
        started = False

        # the bar only appears once bytes flow, so prompts issued earlier
        # inside this context are not drawn over
        def on_progress(done: int, total: int) -> None:
            nonlocal started
            if not started:
                progress.start()
                started = True
            observer(done, total)

        try:
            yield on_progress
        finally:
            if started:
                progress.stop()


def _observer(progress, task_id: TaskID) -> Callable[[int, int], None]:
    def on_progress(done: int, total: int) -> None:
        progress.update(task_id, completed=done, total=total)
    return on_progress


class _DummyProgress:
    """dummy progress object for non-interactive mode."""

    def add_task(self, description: str, total: Optional[int] = None, **kwargs) -> TaskID:
        return TaskID(0)

    def update(self, task_id: TaskID, **kwargs):
        pass
