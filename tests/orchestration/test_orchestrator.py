"""Tests for the pass orchestrator."""

import threading
from datetime import UTC, datetime, timedelta

import pytest

from ticker_spine.core.errors import DataUnavailableError, ErrorContext, OrchestrationError
from ticker_spine.framework.alerts import AlertSeverity
from ticker_spine.orchestration import ErrorChannel, Orchestrator, RunState


class RecordingPhase:
    def __init__(self, name, log, error=None):
        self.name = name
        self.log = log
        self.error = error

    def run(self):
        self.log.append(self.name)
        if self.error is not None:
            raise self.error


class BlockingPhase:
    """Holds the pass open until ``release`` is set."""

    name = "blocking"

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.runs = 0
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def run(self):
        with self._lock:
            self.runs += 1
            self.active += 1
            self.peak = max(self.peak, self.active)
        self.entered.set()
        self.release.wait(timeout=5)
        with self._lock:
            self.active -= 1


class StepClock:
    def __init__(self):
        self.now = datetime(2024, 3, 15, 9, 0, tzinfo=UTC)

    def __call__(self):
        self.now += timedelta(seconds=30)
        return self.now


def run_in_thread(orchestrator, pass_name):
    results = []
    thread = threading.Thread(target=lambda: results.append(orchestrator.trigger(pass_name)))
    thread.start()
    return thread, results


class TestSuccessfulPass:
    def test_phases_run_in_order(self, notifier):
        log = []
        orchestrator = Orchestrator(
            {"local": [RecordingPhase("symbols", log), RecordingPhase("heatmaps", log)]},
            notifier,
        )

        record = orchestrator.trigger("local")

        assert log == ["symbols", "heatmaps"]
        assert record.state is RunState.SUCCEEDED
        assert record.phases_completed == ["symbols", "heatmaps"]
        assert orchestrator.state is RunState.IDLE
        assert orchestrator.last_run is record

    def test_started_and_finished_notifications(self, notifier, memory_channel):
        orchestrator = Orchestrator({"full": [RecordingPhase("symbols", [])]}, notifier)

        record = orchestrator.trigger("full")

        assert memory_channel.subjects == [
            "ticker-spine full pass started",
            "ticker-spine full pass finished",
        ]
        assert [a.run_id for a in memory_channel.alerts] == [record.run_id, record.run_id]
        assert [a.metadata["event"] for a in memory_channel.alerts] == ["started", "finished"]

    def test_record_timing(self, notifier):
        orchestrator = Orchestrator({"local": [RecordingPhase("symbols", [])]}, notifier, clock=StepClock())

        record = orchestrator.trigger("local")

        assert record.duration_seconds == 30.0
        data = record.to_dict()
        assert data["pass"] == "local"
        assert data["state"] == "succeeded"
        assert data["error"] is None


class TestFailedPhase:
    def test_later_phases_do_not_run(self, notifier, memory_channel):
        log = []
        error = DataUnavailableError("no symbols", context=ErrorContext(index="FTSE_100"))
        orchestrator = Orchestrator(
            {
                "local": [
                    RecordingPhase("symbols", log),
                    RecordingPhase("reference", log, error=error),
                    RecordingPhase("heatmaps", log),
                ]
            },
            notifier,
        )

        record = orchestrator.trigger("local")

        assert log == ["symbols", "reference"]
        assert record.state is RunState.FAILED
        assert record.failed_phase == "reference"
        assert record.phases_completed == ["symbols"]
        assert isinstance(record.error, OrchestrationError)
        assert record.error.cause is error
        assert record.error.context.index == "FTSE_100"
        assert orchestrator.state is RunState.IDLE

    def test_failed_notification(self, notifier, memory_channel):
        orchestrator = Orchestrator(
            {"local": [RecordingPhase("symbols", [], error=RuntimeError("scrape broke"))]},
            notifier,
        )

        orchestrator.trigger("local")

        failed = memory_channel.alerts[-1]
        assert failed.subject == "ticker-spine local pass failed"
        assert failed.severity == AlertSeverity.ERROR
        assert "failed phase: symbols" in failed.body
        assert "scrape broke" in failed.body

    def test_next_trigger_runs_after_failure(self, notifier):
        log = []
        phase = RecordingPhase("symbols", log, error=RuntimeError("once"))
        orchestrator = Orchestrator({"local": [phase]}, notifier)

        orchestrator.trigger("local")
        phase.error = None
        record = orchestrator.trigger("local")

        assert record.state is RunState.SUCCEEDED
        assert [r.state for r in orchestrator.history] == [RunState.FAILED, RunState.SUCCEEDED]


class TestSingleFlight:
    def test_overlapping_trigger_is_dropped(self, notifier):
        phase = BlockingPhase()
        orchestrator = Orchestrator({"full": [phase]}, notifier)

        thread, results = run_in_thread(orchestrator, "full")
        assert phase.entered.wait(timeout=5)

        assert orchestrator.state is RunState.RUNNING
        assert orchestrator.current_run.pass_name == "full"
        assert orchestrator.trigger("full") is None

        phase.release.set()
        thread.join(timeout=5)

        assert results[0].state is RunState.SUCCEEDED
        assert phase.runs == 1
        assert len(orchestrator.history) == 1

    def test_overlapping_trigger_is_queued_once(self, notifier):
        phase = BlockingPhase()
        orchestrator = Orchestrator({"full": [phase]}, notifier, queue_pending=True)

        thread, _ = run_in_thread(orchestrator, "full")
        assert phase.entered.wait(timeout=5)

        assert orchestrator.trigger("full") is None
        assert orchestrator.trigger("full") is None
        assert orchestrator.pending == "full"

        phase.release.set()
        thread.join(timeout=5)

        assert phase.runs == 2
        assert phase.peak == 1
        assert orchestrator.pending is None
        assert orchestrator.state is RunState.IDLE

    def test_concurrent_triggers_never_overlap(self, notifier):
        phase = BlockingPhase()
        phase.release.set()
        orchestrator = Orchestrator({"full": [phase]}, notifier, queue_pending=True)

        threads = [threading.Thread(target=orchestrator.trigger, args=("full",)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert phase.peak == 1
        assert 1 <= phase.runs <= 8
        assert orchestrator.state is RunState.IDLE


class TestBackgroundErrors:
    def test_reported_errors_are_attached(self, notifier, memory_channel):
        channel = ErrorChannel()
        phase = RecordingPhase("prices", [])
        orchestrator = Orchestrator({"full": [phase]}, notifier, error_channel=channel)
        channel.report("writer", RuntimeError("throttled"))

        record = orchestrator.trigger("full")

        assert record.state is RunState.SUCCEEDED
        assert record.reported_errors == [{"component": "writer", "error": "throttled"}]
        assert "writer error: throttled" in memory_channel.alerts[-1].body
        assert len(channel) == 0

    def test_settle_runs_before_collection(self, notifier):
        channel = ErrorChannel()

        def settle():
            channel.report("cache", RuntimeError("put failed"))

        orchestrator = Orchestrator(
            {"local": [RecordingPhase("symbols", [])]},
            notifier,
            error_channel=channel,
            settle=[settle],
        )

        record = orchestrator.trigger("local")

        assert [e["component"] for e in record.reported_errors] == ["cache"]


class TestConfiguration:
    def test_unknown_pass(self, notifier):
        orchestrator = Orchestrator({"local": []}, notifier)

        with pytest.raises(OrchestrationError):
            orchestrator.trigger("weekly")

    def test_requires_a_pass(self, notifier):
        with pytest.raises(ValueError):
            Orchestrator({}, notifier)

    def test_history_is_bounded(self, notifier):
        orchestrator = Orchestrator({"local": []}, notifier, history_size=2)

        for _ in range(3):
            orchestrator.trigger("local")

        assert len(orchestrator.history) == 2
