"""Tests for core/progress_monitor.py - action run display."""

import io
import logging

from rich.console import Console

from printer_patcher.core.progress_monitor import ActionProgressMonitor, _resolve_rich
from printer_patcher.engine import (
    ExecutionReport,
    Phase,
    PreloadResult,
    ProgressEvent,
    RunState,
)


def make_console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=120, force_terminal=False), buffer


class TestResolveRich:
    """Tests for _resolve_rich helper."""

    def test_explicit_true(self):
        assert _resolve_rich(True) is True

    def test_explicit_false(self):
        assert _resolve_rich(False) is False

    def test_env_disables(self, monkeypatch):
        monkeypatch.setenv("PRINTER_PATCHER_RICH", "0")
        assert _resolve_rich(None) is False

    def test_env_forces_on(self, monkeypatch):
        monkeypatch.setenv("PRINTER_PATCHER_RICH", "yes")
        monkeypatch.setenv("CI", "true")
        assert _resolve_rich(None) is True

    def test_no_color_disables(self, monkeypatch):
        monkeypatch.delenv("PRINTER_PATCHER_RICH", raising=False)
        monkeypatch.setenv("NO_COLOR", "")
        assert _resolve_rich(None) is False

    def test_ci_disables(self, monkeypatch):
        monkeypatch.delenv("PRINTER_PATCHER_RICH", raising=False)
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("CI", "1")
        assert _resolve_rich(None) is False

    def test_follows_tty(self, monkeypatch):
        monkeypatch.delenv("PRINTER_PATCHER_RICH", raising=False)
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("CI", raising=False)
        monkeypatch.setattr("sys.stdout", io.StringIO())
        assert _resolve_rich(None) is False


class TestActionProgressMonitor:
    """Tests for ActionProgressMonitor."""

    def test_records_events(self):
        events = [
            ProgressEvent(Phase.preloading, 0, 2),
            ProgressEvent(Phase.running, 0, 2, step_title="A"),
        ]
        with ActionProgressMonitor("Action", use_rich=False) as monitor:
            for event in events:
                monitor(event)
        assert monitor.events == events

    def test_log_mode_reports_failures(self, caplog):
        logger = logging.getLogger("test.monitor")
        with caplog.at_level(logging.INFO, logger="test.monitor"):
            with ActionProgressMonitor("Action", use_rich=False, logger=logger) as m:
                m(ProgressEvent(Phase.running, 0, 2, step_title="A"))
                m(ProgressEvent(Phase.failed, 0, 2, step_title="A", message="boom"))
        assert "Step 1/2: A" in caplog.text
        assert "A: boom" in caplog.text

    def test_rich_mode_prints_failure(self):
        console, buffer = make_console()
        with ActionProgressMonitor("Action", use_rich=True, console=console) as m:
            m(ProgressEvent(Phase.running, 0, 1, step_title="A"))
            m(ProgressEvent(Phase.failed, 0, 1, step_title="A", message="boom"))
        assert "boom" in buffer.getvalue()

    def test_print_summary_success(self):
        console, buffer = make_console()
        report = ExecutionReport(
            action_title="Action",
            source_name="local",
            state=RunState(phase=Phase.succeeded, total=2, step_index=1, completed=2),
        )
        ActionProgressMonitor("Action", use_rich=False, console=console).print_summary(
            report
        )
        assert "All 2 steps succeeded" in buffer.getvalue()

    def test_print_summary_lists_preload_failures(self):
        console, buffer = make_console()
        report = ExecutionReport(
            action_title="Action",
            source_name="local",
            state=RunState(
                phase=Phase.failed, total=2, step_index=0, reason="exit 1"
            ),
            preload=PreloadResult(total=1, loaded=0, failed=("setup.sh",)),
        )
        ActionProgressMonitor("Action", use_rich=False, console=console).print_summary(
            report
        )
        output = buffer.getvalue()
        assert "0/2 succeeded, stopped at step 1: exit 1" in output
        assert "setup.sh" in output
