"""Tests for the notification framework."""

import io
import smtplib

from rich.console import Console

from ticker_spine.framework.alerts import (
    Alert,
    AlertSeverity,
    BaseChannel,
    ChannelType,
    ConsoleChannel,
    DeliveryResult,
    EmailChannel,
    MemoryChannel,
    Notifier,
)


class ExplodingChannel(BaseChannel):
    def __init__(self):
        super().__init__("exploding", ChannelType.CONSOLE)

    def send(self, alert):
        raise RuntimeError("channel down")


class RefusingChannel(BaseChannel):
    def __init__(self):
        super().__init__("refusing", ChannelType.CONSOLE)

    def send(self, alert):
        return DeliveryResult.fail(self.name, ConnectionError("refused"))


class TestAlertSeverity:
    def test_ordering(self):
        assert AlertSeverity.INFO < AlertSeverity.WARNING < AlertSeverity.ERROR < AlertSeverity.CRITICAL
        assert AlertSeverity.ERROR >= AlertSeverity.ERROR


class TestNotifier:
    def test_fans_out_to_every_channel(self):
        first, second = MemoryChannel("first"), MemoryChannel("second")
        notifier = Notifier([first, second])

        results = notifier.send("Run started", "Pass: full", run_id="abc", event="started")

        assert [r.success for r in results] == [True, True]
        assert first.subjects == second.subjects == ["Run started"]
        alert = first.alerts[0]
        assert alert.body == "Pass: full"
        assert alert.run_id == "abc"
        assert alert.metadata == {"event": "started"}
        assert alert.source == "ticker-spine"

    def test_failing_channel_does_not_stop_delivery(self):
        memory = MemoryChannel()
        notifier = Notifier([ExplodingChannel(), RefusingChannel(), memory])

        results = notifier.send("Run failed", severity=AlertSeverity.ERROR)

        assert [r.success for r in results] == [False, False, True]
        assert "channel down" in results[0].message
        assert memory.subjects == ["Run failed"]

    def test_min_severity_filters(self):
        errors_only = MemoryChannel("errors", min_severity=AlertSeverity.ERROR)
        notifier = Notifier([errors_only])

        notifier.send("fyi")
        notifier.send("broken", severity=AlertSeverity.ERROR)

        assert errors_only.subjects == ["broken"]

    def test_disabled_channel_is_skipped(self):
        channel = MemoryChannel()
        channel.disable()

        assert Notifier([channel]).send("ignored") == []
        assert channel.alerts == []

    def test_register_replaces_channel_with_same_name(self):
        first, second = MemoryChannel("ops"), MemoryChannel("ops")
        notifier = Notifier([first])
        notifier.register(second)

        notifier.send("hello")

        assert first.alerts == []
        assert second.subjects == ["hello"]


class TestConsoleChannel:
    def test_prints_subject_and_body(self):
        buffer = io.StringIO()
        channel = ConsoleChannel(console=Console(file=buffer, width=200))

        result = channel.send(Alert(subject="Price fetch failed for VOD", body="bad request"))

        assert result.success
        output = buffer.getvalue()
        assert "[INFO] Price fetch failed for VOD" in output
        assert "bad request" in output


class TestEmailChannel:
    def make(self, recipients=("ops@example.test",)):
        return EmailChannel(
            "email",
            "smtp.example.test",
            "spine@example.test",
            list(recipients),
        )

    def test_build_message(self):
        alert = Alert(subject="Run failed", body="error: boom", severity=AlertSeverity.ERROR, run_id="r1")

        msg = self.make().build_message(alert)

        assert msg["Subject"] == "[ERROR] Run failed"
        assert msg["To"] == "ops@example.test"
        content = msg.get_content()
        assert "Run: r1" in content
        assert "error: boom" in content

    def test_no_recipients_is_a_no_op(self):
        assert self.make(recipients=()).send(Alert(subject="x", body="")).success

    def test_smtp_failure_is_reported(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("no smtp")

        monkeypatch.setattr(smtplib, "SMTP", refuse)

        result = self.make().send(Alert(subject="x", body=""))

        assert not result.success
        assert isinstance(result.error, ConnectionRefusedError)
