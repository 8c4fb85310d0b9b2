"""Progress display for action runs.

Consumes the ``ProgressEvent`` values published by ``ExecutionEngine`` and
renders them as a Rich transient progress bar, or as structured log lines
when the terminal is non-interactive.

Usage::

    with ActionProgressMonitor("Backup configuration") as monitor:
        engine = ExecutionEngine(source, on_event=monitor)
        report = engine.run(action, host, credentials)
    monitor.print_summary(report)
"""

import logging
import os
import sys

from rich.console import Console
from rich.markup import escape as _rich_escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from printer_patcher.engine import ExecutionReport, Phase, ProgressEvent


_RICH_ON = frozenset({"1", "true", "yes"})
_RICH_OFF = frozenset({"0", "false", "no"})


def _resolve_rich(use_rich: bool | None) -> bool:
    """Decide between the progress bar and plain log lines.

    An explicit ``use_rich`` wins. Otherwise ``PRINTER_PATCHER_RICH`` forces
    either mode, ``NO_COLOR`` or ``CI`` turn the bar off, and finally the bar
    is only drawn when stdout is a terminal.
    """
    if use_rich is not None:
        return use_rich

    forced = os.environ.get("PRINTER_PATCHER_RICH", "").strip().lower()
    if forced in _RICH_ON:
        return True
    if forced in _RICH_OFF:
        return False

    # https://no-color.org/ only checks presence
    if "NO_COLOR" in os.environ or os.environ.get("CI"):
        return False

    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


_PHASE_LABELS = {
    Phase.preloading: "Preloading scripts",
    Phase.connecting: "Connecting",
}


class ActionProgressMonitor:
    """Render one action run.

    The progress bar is transient (disappears on completion) so it never
    collides with the summary printed afterwards.
    """

    def __init__(
        self,
        action_title: str,
        use_rich: bool | None = None,
        logger: logging.Logger | None = None,
        console: Console | None = None,
    ):
        self.action_title = action_title
        self.logger = logger or logging.getLogger(__name__)
        self._use_rich = _resolve_rich(use_rich)
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self.events: list[ProgressEvent] = []

    def __enter__(self) -> "ActionProgressMonitor":
        if self._use_rich:
            self._console = self._console or Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )
            self._progress.start()
            self._task_id = self._progress.add_task(self.action_title, total=None)
        else:
            self.logger.info("Executing action: %s", self.action_title)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._progress:
            self._progress.stop()
            self._progress = None
            self._task_id = None

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)
        if self._progress and self._task_id is not None:
            self._render_rich(event)
        else:
            self._render_log(event)

    def _render_rich(self, event: ProgressEvent) -> None:
        assert self._progress is not None and self._task_id is not None
        label = _PHASE_LABELS.get(event.phase)
        if label is None and event.step_title:
            label = f"Step {min(event.completed + 1, event.total)}: {event.step_title}"
        self._progress.update(
            self._task_id,
            total=event.total,
            completed=event.completed,
            description=_rich_escape(label or self.action_title),
        )
        if event.phase is Phase.failed or event.phase is Phase.connection_error:
            self._progress.console.print(
                f"  [red]✗ {_rich_escape(event.message or event.phase.value)}[/red]"
            )
        elif event.phase is Phase.running and event.completed:
            self._progress.console.print(
                f"  [green]✓[/green] {event.completed}/{event.total} done"
            )

    def _render_log(self, event: ProgressEvent) -> None:
        if event.phase is Phase.failed or event.phase is Phase.connection_error:
            self.logger.error(
                "%s: %s", event.step_title or self.action_title, event.message
            )
        elif event.phase is Phase.running and event.step_title:
            self.logger.info(
                "Step %d/%d: %s",
                event.completed + 1,
                event.total,
                event.step_title,
            )
        elif event.phase in _PHASE_LABELS:
            self.logger.info("%s", _PHASE_LABELS[event.phase])

    def print_summary(self, report: ExecutionReport) -> None:
        """Print the final result line."""
        console = self._console or Console()
        if report.succeeded:
            console.print(f"[green]✓ {_rich_escape(report.summary)}[/green]")
        else:
            console.print(f"[red]✗ {_rich_escape(report.summary)}[/red]")
        if report.preload.failed:
            console.print(
                "[yellow]Scripts not preloaded: "
                f"{_rich_escape(', '.join(report.preload.failed))}[/yellow]"
            )
