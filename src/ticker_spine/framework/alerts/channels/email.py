"""Email (SMTP) alert channel."""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Any

from ticker_spine.framework.alerts.base import BaseChannel
from ticker_spine.framework.alerts.protocol import (
    Alert,
    AlertSeverity,
    ChannelType,
    DeliveryResult,
)


class EmailChannel(BaseChannel):
    """Sends each alert as a plain-text email."""

    def __init__(
        self,
        name: str,
        smtp_host: str,
        from_address: str,
        recipients: list[str],
        *,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30.0,
        min_severity: AlertSeverity = AlertSeverity.INFO,
        **kwargs: Any,
    ):
        super().__init__(name, ChannelType.EMAIL, min_severity=min_severity, **kwargs)
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._from_address = from_address
        self._recipients = recipients
        self._use_tls = use_tls
        self._timeout = timeout

    def build_message(self, alert: Alert) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = f"[{alert.severity.value}] {alert.subject}"
        msg["From"] = self._from_address
        msg["To"] = ", ".join(self._recipients)
        lines = [
            f"{alert.severity.value}: {alert.subject}",
            f"Source: {alert.source}",
            f"Time: {alert.created_at.isoformat()}",
        ]
        if alert.run_id:
            lines.append(f"Run: {alert.run_id}")
        lines += ["", alert.body]
        msg.set_content("\n".join(lines))
        return msg

    def send(self, alert: Alert) -> DeliveryResult:
        if not self._recipients:
            return DeliveryResult.ok(self._name, message="No recipients configured")
        try:
            with smtplib.SMTP(self._smtp_host, self._smtp_port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._smtp_user and self._smtp_password:
                    server.login(self._smtp_user, self._smtp_password)
                server.send_message(self.build_message(alert))
        except (smtplib.SMTPException, OSError) as e:
            return DeliveryResult.fail(self._name, e)
        return DeliveryResult.ok(self._name)
