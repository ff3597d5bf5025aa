"""
Acquisition pass orchestration.

A *pass* is a named, ordered list of phases (``symbols``, ``reference``,
``heatmaps``, ``prices``). ``Orchestrator.trigger()`` runs one pass at a
time:

    IDLE → RUNNING → SUCCEEDED | FAILED → IDLE

A trigger that arrives while a pass is running is dropped, or, with
``queue_pending=True``, kept as the single pending pass and run right after
the current one. A phase that raises fails the run; later phases are not
started and completed phases are not rolled back. The process keeps going.

Background failures from the cache and the price writer are reported into
an ``ErrorChannel`` and attached to the run record.

Example:
    >>> orchestrator = Orchestrator({"local": [symbols, reference]}, notifier)
    >>> record = orchestrator.trigger("local")
    >>> record.state
    <RunState.SUCCEEDED: 'succeeded'>
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

import structlog

from ticker_spine.core.errors import OrchestrationError, TickerSpineError
from ticker_spine.core.logging import LogContext
from ticker_spine.framework.alerts import AlertSeverity, Notifier

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


VALID_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.RUNNING}),
    RunState.RUNNING: frozenset({RunState.SUCCEEDED, RunState.FAILED}),
    RunState.SUCCEEDED: frozenset({RunState.IDLE}),
    RunState.FAILED: frozenset({RunState.IDLE}),
}


class Phase(Protocol):
    name: str

    def run(self) -> Any: ...


class ErrorChannel:
    """Thread-safe collector for errors raised off the orchestrator thread.

    ``report`` matches the ``ErrorReporter`` signature so it can be handed to
    ``TieredCache`` and ``BatchedWriter`` directly.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: list[tuple[str, BaseException]] = []

    def report(self, component: str, error: BaseException) -> None:
        with self._lock:
            self._errors.append((component, error))

    def drain(self) -> list[tuple[str, BaseException]]:
        with self._lock:
            errors, self._errors = self._errors, []
        return errors

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)


@dataclass
class RunRecord:
    """Outcome of one pass."""

    run_id: str
    pass_name: str
    state: RunState = RunState.RUNNING
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    phases_completed: list[str] = field(default_factory=list)
    failed_phase: str | None = None
    error: OrchestrationError | None = None
    reported_errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "pass": self.pass_name,
            "state": self.state.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "phases_completed": list(self.phases_completed),
            "failed_phase": self.failed_phase,
            "error": self.error.to_dict() if self.error else None,
            "reported_errors": list(self.reported_errors),
        }


class Orchestrator:
    """Runs acquisition passes one at a time and reports their lifecycle."""

    def __init__(
        self,
        passes: Mapping[str, Sequence[Phase]],
        notifier: Notifier,
        *,
        error_channel: ErrorChannel | None = None,
        queue_pending: bool = False,
        settle: Sequence[Callable[[], Any]] = (),
        history_size: int = 50,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            passes: Pass name to its phases, in execution order.
            notifier: Receives the started / finished / failed notifications.
            error_channel: Collects background errors reported during a run.
            queue_pending: Keep one overlapping trigger instead of dropping it.
            settle: Called after the last phase, before background errors
                are collected (e.g. ``cache.flush``).
            history_size: How many finished run records to keep.
            clock: Provider for run timestamps.
        """
        if not passes:
            raise ValueError("at least one pass is required")
        self.passes = {name: list(phases) for name, phases in passes.items()}
        self.notifier = notifier
        self.error_channel = error_channel or ErrorChannel()
        self.queue_pending = queue_pending
        self._settle = list(settle)
        self._clock = clock
        self._lock = threading.Lock()
        self._running = False
        self._pending: str | None = None
        self._current: RunRecord | None = None
        self._history: deque[RunRecord] = deque(maxlen=history_size)

    @property
    def state(self) -> RunState:
        with self._lock:
            return RunState.RUNNING if self._running else RunState.IDLE

    @property
    def current_run(self) -> RunRecord | None:
        return self._current

    @property
    def last_run(self) -> RunRecord | None:
        return self._history[-1] if self._history else None

    @property
    def history(self) -> list[RunRecord]:
        return list(self._history)

    @property
    def pending(self) -> str | None:
        with self._lock:
            return self._pending

    def trigger(self, pass_name: str) -> RunRecord | None:
        """Run ``pass_name`` now, unless a pass is already running.

        Returns the finished record, or None if the trigger was dropped or
        queued behind the running pass.

        Raises:
            OrchestrationError: if ``pass_name`` is not a configured pass.
        """
        if pass_name not in self.passes:
            raise OrchestrationError(f"Unknown pass: {pass_name}")

        with self._lock:
            if self._running:
                if self.queue_pending and self._pending is None:
                    self._pending = pass_name
                    logger.info("orchestrator.trigger_queued", pass_name=pass_name)
                else:
                    logger.info("orchestrator.trigger_dropped", pass_name=pass_name)
                return None
            self._running = True

        try:
            record = self._execute(pass_name)
            pending = self._take_pending()
            while pending is not None:
                self._execute(pending)
                pending = self._take_pending()
        except BaseException:
            with self._lock:
                self._running = False
                self._pending = None
            raise
        return record

    def _take_pending(self) -> str | None:
        # Clearing _running under the same lock keeps a concurrent trigger
        # from queueing behind a run that is about to end.
        with self._lock:
            pending, self._pending = self._pending, None
            if pending is None:
                self._running = False
            return pending

    def _execute(self, pass_name: str) -> RunRecord:
        record = RunRecord(
            run_id=uuid.uuid4().hex[:12],
            pass_name=pass_name,
            started_at=self._clock(),
        )
        self._current = record
        with LogContext(run_id=record.run_id, pass_name=pass_name):
            logger.info("orchestrator.run_started")
            self._notify(record, "started", AlertSeverity.INFO)

            for phase in self.passes[pass_name]:
                logger.info("orchestrator.phase_started", phase=phase.name)
                try:
                    phase.run()
                except Exception as e:
                    self._fail(record, phase.name, e)
                    break
                record.phases_completed.append(phase.name)
                logger.info("orchestrator.phase_completed", phase=phase.name)

            self._collect_background_errors(record)
            record.finished_at = self._clock()

            if record.state is RunState.RUNNING:
                self._transition(record, RunState.SUCCEEDED)
                logger.info(
                    "orchestrator.run_succeeded",
                    phases=record.phases_completed,
                    duration_seconds=record.duration_seconds,
                    reported_errors=len(record.reported_errors),
                )
                self._notify(record, "finished", AlertSeverity.INFO)
            else:
                self._notify(record, "failed", AlertSeverity.ERROR)

        self._history.append(record)
        self._current = None
        return record

    def _fail(self, record: RunRecord, phase: str, error: Exception) -> None:
        context = error.context if isinstance(error, TickerSpineError) else None
        record.failed_phase = phase
        record.error = OrchestrationError(
            f"Phase {phase} failed: {error}",
            context=context,
            cause=error,
        )
        self._transition(record, RunState.FAILED)
        logger.error(
            "orchestrator.phase_failed",
            phase=phase,
            error=str(error),
            error_type=type(error).__name__,
            phases_completed=record.phases_completed,
        )

    def _collect_background_errors(self, record: RunRecord) -> None:
        for settle in self._settle:
            try:
                settle()
            except Exception as e:
                logger.warning("orchestrator.settle_failed", error=str(e))
        for component, error in self.error_channel.drain():
            record.reported_errors.append({"component": component, "error": str(error)})
            logger.warning("orchestrator.background_error", component=component, error=str(error))

    @staticmethod
    def _transition(record: RunRecord, target: RunState) -> None:
        if target not in VALID_TRANSITIONS[record.state]:
            raise OrchestrationError(
                f"Invalid run transition: {record.state.value} -> {target.value}"
            )
        record.state = target

    def _notify(self, record: RunRecord, event: str, severity: AlertSeverity) -> None:
        subject = f"ticker-spine {record.pass_name} pass {event}"
        lines = [f"run_id: {record.run_id}"]
        if record.phases_completed:
            lines.append(f"phases completed: {', '.join(record.phases_completed)}")
        if record.error is not None:
            lines.append(f"failed phase: {record.failed_phase}")
            lines.append(f"error: {record.error.cause or record.error}")
        for reported in record.reported_errors:
            lines.append(f"{reported['component']} error: {reported['error']}")
        self.notifier.send(
            subject,
            "\n".join(lines),
            severity=severity,
            run_id=record.run_id,
            event=event,
        )


__all__ = ["RunState", "Phase", "ErrorChannel", "RunRecord", "Orchestrator"]
