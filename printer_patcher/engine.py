"""Sequential step execution for one action against one device.

The run is an explicit state machine::

    idle -> preloading -> connecting -> running(step i)
         -> succeeded | failed | connection_error

``transition()`` is a pure function of ``(state, outcome)`` so the whole
lifecycle can be tested without a device. ``ExecutionEngine.run()`` drives
it: preload step scripts, open one SSH session, run each step, validate
its output, and stop at the first execution error or mismatch.

Progress is published as ``ProgressEvent`` values through an optional
callback after every transition; the final ``ExecutionReport`` carries a
human summary.

Usage::

    engine = ExecutionEngine(source, on_event=print)
    report = engine.run(action, "192.168.1.20", Credentials("root", "pw"))
    print(report.summary)
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol

from printer_patcher.config.models import Action, Step
from printer_patcher.errors import (
    PatcherError,
    SSHConnectionError,
    StepExecutionError,
    ValidationFailure,
)
from printer_patcher.remote.session import Credentials, connect
from printer_patcher.remote.validation import validate_output
from printer_patcher.settings import get_cache_ttl, get_ssh_port
from printer_patcher.sources import ActionSource

logger = logging.getLogger(__name__)


# =============================================================================
# State machine
# =============================================================================


class Phase(str, Enum):
    """Lifecycle phase of one action run."""

    idle = "idle"
    preloading = "preloading"
    connecting = "connecting"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    connection_error = "connection_error"


TERMINAL_PHASES = frozenset({Phase.succeeded, Phase.failed, Phase.connection_error})


class Outcome(str, Enum):
    """Event fed to ``transition()``."""

    start = "start"
    preloaded = "preloaded"
    connected = "connected"
    connect_failed = "connect_failed"
    step_passed = "step_passed"
    step_error = "step_error"
    step_mismatch = "step_mismatch"
    stop_requested = "stop_requested"


class FailureKind(str, Enum):
    connection = "connection"
    execution = "execution"
    validation = "validation"
    stopped = "stopped"


@dataclass(frozen=True)
class RunState:
    """Immutable snapshot of a run; ``step_index`` is 0-based."""

    phase: Phase = Phase.idle
    total: int = 0
    step_index: int = 0
    completed: int = 0
    failure: FailureKind | None = None
    reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


class InvalidTransitionError(PatcherError):
    """Outcome not accepted in the current phase."""


_FAILURE_OUTCOMES = {
    Outcome.step_error: FailureKind.execution,
    Outcome.step_mismatch: FailureKind.validation,
    Outcome.stop_requested: FailureKind.stopped,
}


def transition(
    state: RunState, outcome: Outcome, reason: str | None = None
) -> RunState:
    """Return the state following ``outcome``.

    Raises:
        InvalidTransitionError: If ``outcome`` is not valid in ``state.phase``.
    """
    phase = state.phase

    if phase is Phase.idle and outcome is Outcome.start:
        return replace(state, phase=Phase.preloading)

    if phase is Phase.preloading and outcome is Outcome.preloaded:
        return replace(state, phase=Phase.connecting)

    if phase is Phase.connecting:
        if outcome is Outcome.connected:
            if state.total == 0:
                return replace(state, phase=Phase.succeeded)
            return replace(state, phase=Phase.running, step_index=0)
        if outcome is Outcome.connect_failed:
            return replace(
                state,
                phase=Phase.connection_error,
                failure=FailureKind.connection,
                reason=reason,
            )

    if phase is Phase.running:
        if outcome is Outcome.step_passed:
            completed = state.completed + 1
            if state.step_index + 1 >= state.total:
                return replace(state, phase=Phase.succeeded, completed=completed)
            return replace(state, step_index=state.step_index + 1, completed=completed)
        if outcome in _FAILURE_OUTCOMES:
            return replace(
                state,
                phase=Phase.failed,
                failure=_FAILURE_OUTCOMES[outcome],
                reason=reason,
            )

    raise InvalidTransitionError(f"Outcome {outcome.value} not valid in {phase.value}")


# =============================================================================
# Events and reports
# =============================================================================


@dataclass(frozen=True)
class ProgressEvent:
    """Published after every transition of a run."""

    phase: Phase
    completed: int
    total: int
    step_title: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class PreloadResult:
    total: int = 0
    loaded: int = 0
    failed: tuple[str, ...] = ()

    @property
    def all_failed(self) -> bool:
        return self.total > 0 and self.loaded == 0


@dataclass(frozen=True)
class ExecutionReport:
    """Outcome of one action run."""

    action_title: str
    source_name: str
    state: RunState
    preload: PreloadResult = field(default_factory=PreloadResult)
    failed_step_title: str | None = None
    error: PatcherError | None = None
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state.phase is Phase.succeeded

    @property
    def total(self) -> int:
        return self.state.total

    @property
    def completed(self) -> int:
        return self.state.completed

    @property
    def failed_step(self) -> int | None:
        """1-based number of the step that stopped the run, if any."""
        if self.state.phase is Phase.failed:
            return self.state.step_index + 1
        return None

    @property
    def summary(self) -> str:
        if self.succeeded:
            return f"All {self.total} steps succeeded"
        if self.state.phase is Phase.connection_error:
            return (
                f"0/{self.total} succeeded, could not connect: {self.state.reason}"
            )
        return (
            f"{self.completed}/{self.total} succeeded, "
            f"stopped at step {self.failed_step}: {self.state.reason}"
        )

    def raise_for_status(self) -> None:
        """Re-raise a failed run as the matching exception.

        Raises:
            SSHConnectionError: The session could not be opened.
            StepExecutionError: A step's command failed to run, or a stop
                was requested.
            ValidationFailure: A step's output did not match.
        """
        if self.error is not None:
            raise self.error


# =============================================================================
# Script cache
# =============================================================================


class ScriptCache:
    """Resolved step scripts keyed by ``(source_name, script_ref)``.

    Shared between runs so a script loaded once is not resolved again
    within the TTL; partitioned by source so switching revision never
    reuses another revision's script.
    """

    def __init__(
        self, ttl: float | None = None, clock: Callable[[], float] = time.time
    ):
        self.ttl = ttl if ttl is not None else get_cache_ttl()
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[tuple[str, str], tuple[str, float]] = {}

    def get(self, source_name: str, script_ref: str) -> str | None:
        key = (source_name, script_ref)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            content, stored_at = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                return None
            return content

    def put(self, source_name: str, script_ref: str, content: str) -> None:
        with self._lock:
            self._entries[(source_name, script_ref)] = (content, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# =============================================================================
# Engine
# =============================================================================


class Session(Protocol):
    def run(self, command: str) -> tuple[str, str | None]: ...

    def close(self) -> None: ...


Connector = Callable[[str, int, Credentials], Session]
ProgressCallback = Callable[[ProgressEvent], None]


class ExecutionEngine:
    """Run actions from one source, one step at a time.

    Args:
        source: Source the action's step scripts are resolved through.
        script_cache: Shared resolved-script cache (new one if omitted).
        connector: ``(host, port, credentials) -> session``; defaults to SSH.
        port: Device SSH port (settings default if omitted).
        on_event: Callback receiving a ``ProgressEvent`` after each transition.
    """

    def __init__(
        self,
        source: ActionSource,
        script_cache: ScriptCache | None = None,
        connector: Connector | None = None,
        port: int | None = None,
        on_event: ProgressCallback | None = None,
    ):
        self.source = source
        self.script_cache = script_cache if script_cache is not None else ScriptCache()
        self._connector = connector or connect
        self.port = port if port is not None else get_ssh_port()
        self._on_event = on_event
        self._stop = threading.Event()

    def request_stop(self) -> None:
        """Prevent the next step from starting; a running command completes."""
        self._stop.set()

    # ------------------------------------------------------------------
    # Script resolution
    # ------------------------------------------------------------------

    def _load_script(self, script_ref: str) -> str | None:
        source_name = self.source.source_name()
        cached = self.script_cache.get(source_name, script_ref)
        if cached is not None:
            return cached
        try:
            content = self.source.load_step(script_ref)
        except (PatcherError, OSError) as e:
            logger.warning("Could not load script '%s': %s", script_ref, e)
            return None
        self.script_cache.put(source_name, script_ref, content)
        return content

    def preload(self, action: Action) -> PreloadResult:
        """Resolve every script the action references.

        Failures are logged and counted, never raised; failed scripts are
        tried again when their step runs.
        """
        refs = action.script_refs()
        if not refs:
            logger.debug("No scripts to preload for '%s'", action.title)
            return PreloadResult()

        logger.info("Preloading %d scripts for action '%s'", len(refs), action.title)
        failed = [ref for ref in refs if self._load_script(ref) is None]
        result = PreloadResult(
            total=len(refs), loaded=len(refs) - len(failed), failed=tuple(failed)
        )
        logger.info(
            "Preloaded %d/%d scripts, %d failed",
            result.loaded,
            result.total,
            len(result.failed),
        )
        if result.all_failed:
            logger.error("Failed to preload any scripts, continuing")
        return result

    def resolve_command(self, step: Step) -> str:
        """Command text for ``step``: loaded script, else the raw reference."""
        if not step.is_script_file:
            return step.script
        content = self._load_script(step.script)
        if content is None:
            logger.warning(
                "Continuing with script reference '%s' as command", step.script
            )
            return step.script
        return content

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _advance(
        self,
        state: RunState,
        outcome: Outcome,
        action: Action,
        reason: str | None = None,
    ) -> RunState:
        state = transition(state, outcome, reason)
        step_title = None
        if state.phase in (Phase.running, Phase.failed):
            step_title = action.steps[state.step_index].title
        elif state.phase is Phase.succeeded and action.steps:
            step_title = action.steps[-1].title
        if self._on_event is not None:
            self._on_event(
                ProgressEvent(
                    phase=state.phase,
                    completed=state.completed,
                    total=state.total,
                    step_title=step_title,
                    message=reason,
                )
            )
        return state

    def run(
        self, action: Action, host: str, credentials: Credentials
    ) -> ExecutionReport:
        """Execute ``action`` on ``host``.

        Connection, execution and validation failures end the run and are
        reported in the returned ``ExecutionReport``; they are not raised.
        The session is closed on every exit path.
        """
        started = time.monotonic()
        self._stop.clear()
        source_name = self.source.source_name()
        logger.info("Executing '%s' from %s on %s", action.title, source_name, host)

        state = RunState(total=len(action.steps))
        state = self._advance(state, Outcome.start, action)
        preload = self.preload(action)
        state = self._advance(state, Outcome.preloaded, action)

        try:
            session = self._connector(host, self.port, credentials)
        except SSHConnectionError as e:
            logger.error("Error connecting to %s: %s", host, e)
            state = self._advance(state, Outcome.connect_failed, action, str(e))
            return self._report(action, source_name, state, preload, started, e)

        error: PatcherError | None = None
        try:
            state = self._advance(state, Outcome.connected, action)
            while state.phase is Phase.running:
                state, error = self._run_step(session, action, state)
        finally:
            session.close()

        return self._report(action, source_name, state, preload, started, error)

    def _run_step(
        self, session: Session, action: Action, state: RunState
    ) -> tuple[RunState, PatcherError | None]:
        step = action.steps[state.step_index]

        if self._stop.is_set():
            logger.info("Stop requested before step %d", state.step_index + 1)
            error = StepExecutionError(step.title, "stop requested")
            state = self._advance(state, Outcome.stop_requested, action, str(error))
            return state, error

        logger.info("Step %d/%d: %s", state.step_index + 1, state.total, step.title)
        output, failure = session.run(self.resolve_command(step))
        if failure:
            logger.error("Error in step '%s': %s", step.title, failure)
            error = StepExecutionError(step.title, failure)
            return self._advance(state, Outcome.step_error, action, failure), error

        output = output.strip()
        if not validate_output(output, step.expected):
            mismatch = ValidationFailure(step.title, step.expected, output)
            logger.error("%s", mismatch)
            state = self._advance(state, Outcome.step_mismatch, action, str(mismatch))
            return state, mismatch

        logger.info("Step '%s' completed successfully", step.title)
        return self._advance(state, Outcome.step_passed, action), None

    def _report(
        self,
        action: Action,
        source_name: str,
        state: RunState,
        preload: PreloadResult,
        started: float,
        error: PatcherError | None,
    ) -> ExecutionReport:
        failed_title = None
        if state.phase is Phase.failed:
            failed_title = action.steps[state.step_index].title
        report = ExecutionReport(
            action_title=action.title,
            source_name=source_name,
            state=state,
            preload=preload,
            failed_step_title=failed_title,
            error=error,
            duration=time.monotonic() - started,
        )
        if report.succeeded:
            logger.info("Success: %s", report.summary)
        else:
            logger.error("Error: %s", report.summary)
        return report


def run_in_background(
    engine: ExecutionEngine,
    action: Action,
    host: str,
    credentials: Credentials,
    executor: Executor | None = None,
) -> Future:
    """Start ``engine.run`` off the calling thread.

    Returns a ``Future`` resolving to the ``ExecutionReport``. When no
    executor is given a single-use worker thread is created.
    """
    if executor is not None:
        return executor.submit(engine.run, action, host, credentials)

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="patcher-run")
    future = pool.submit(engine.run, action, host, credentials)
    pool.shutdown(wait=False)
    return future
