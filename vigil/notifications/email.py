"""Email notification channel for Vigil.

Sends notices as HTML emails via SMTP using the standard-library
``smtplib`` executed in a thread-pool executor so the asyncio event loop
is never blocked.
"""

from __future__ import annotations

import asyncio
import html
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from vigil.models.notices import Notice
from vigil.models.rules import ChannelKind, ChannelSpec, Severity
from vigil.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.email")

_SEVERITY_COLOR: dict[Severity, str] = {
    Severity.LOW: "#2e7d32",
    Severity.MEDIUM: "#e65100",
    Severity.HIGH: "#b71c1c",
    Severity.CRITICAL: "#4a0000",
}


class SMTPConfig:
    """SMTP connection parameters.

    Args:
        host:       SMTP server hostname.
        port:       SMTP server port (587 for STARTTLS, 465 for SSL).
        username:   SMTP authentication username.
        password:   SMTP authentication password.
        use_tls:    If True, use SMTP_SSL (port 465). Defaults to False
                    (STARTTLS on port 587).
        from_addr:  Sender email address.
        timeout:    Socket timeout in seconds. Defaults to 10.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_addr: str,
        use_tls: bool = False,
        timeout: float = 10.0,
    ) -> None:
        if not host:
            raise ValueError("SMTP host must not be empty")
        if not from_addr:
            raise ValueError("SMTP from_addr must not be empty")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_addr = from_addr
        self.use_tls = use_tls
        self.timeout = timeout


class EmailNotificationChannel(NotificationChannel):
    """Delivers notices as HTML emails via SMTP.

    Args:
        smtp_config: Connection and authentication parameters.
        to_addr:     Default recipient, used when the rule's channel
                     configuration does not name an address.
    """

    def __init__(self, smtp_config: SMTPConfig, to_addr: str) -> None:
        if not to_addr:
            raise ValueError("Email to_addr must not be empty")
        self._smtp = smtp_config
        self._to_addr = to_addr

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.EMAIL

    def recipient_for(self, spec: ChannelSpec) -> str:
        return spec.recipient if "@" in spec.recipient else self._to_addr

    async def send(self, notice: Notice, spec: ChannelSpec) -> bool:
        """Send *notice* as an HTML email.  Returns True on delivery."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, notice, self.recipient_for(spec))
            return True
        except smtplib.SMTPException as exc:
            _log.warning("email_smtp_error", error=str(exc), notice_id=notice.notice_id)
            return False
        except OSError as exc:
            _log.warning("email_connection_error", error=str(exc), notice_id=notice.notice_id)
            return False

    def _send_sync(self, notice: Notice, to_addr: str) -> None:
        """Blocking SMTP delivery; runs inside a thread executor."""
        msg = self.build_message(notice, to_addr)
        context = ssl.create_default_context()

        if self._smtp.use_tls:
            with smtplib.SMTP_SSL(
                self._smtp.host,
                self._smtp.port,
                context=context,
                timeout=self._smtp.timeout,
            ) as server:
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(
                self._smtp.host,
                self._smtp.port,
                timeout=self._smtp.timeout,
            ) as server:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.send_message(msg)

    def build_message(self, notice: Notice, to_addr: str) -> MIMEMultipart:
        """Construct a MIME multipart email with a plain-text and HTML part."""
        severity_label = notice.severity.value.upper()
        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"[Vigil] {severity_label}: {notice.title}"
        msg["From"] = self._smtp.from_addr
        msg["To"] = to_addr
        msg.attach(MIMEText(self._build_plain(notice, severity_label), "plain", "utf-8"))
        msg.attach(MIMEText(self._build_html(notice, severity_label), "html", "utf-8"))
        return msg

    def _build_plain(self, notice: Notice, severity_label: str) -> str:
        detected_at = notice.detected_at.strftime("%Y-%m-%d %H:%M:%S UTC")
        return (
            f"Vigil {notice.source.title()}\n"
            f"{'=' * 60}\n\n"
            f"Severity:   {severity_label}\n"
            f"Subject:    {notice.subject}\n"
            f"Metric:     {notice.metric}\n"
            f"Value:      {notice.value:.2f}\n"
            f"Reference:  {notice.reference:.2f}\n"
            f"Detected:   {detected_at}\n"
            f"ID:         {notice.notice_id}\n\n"
            f"Summary\n"
            f"{'-' * 60}\n"
            f"{notice.summary}\n"
        )

    def _build_html(self, notice: Notice, severity_label: str) -> str:
        color = _SEVERITY_COLOR.get(notice.severity, "#333333")
        detected_at = notice.detected_at.strftime("%Y-%m-%d %H:%M:%S UTC")
        rows = [
            ("Subject", html.escape(notice.subject)),
            ("Metric", html.escape(notice.metric)),
            ("Value", f"{notice.value:.2f}"),
            ("Reference", f"{notice.reference:.2f}"),
            ("Detected", detected_at),
        ]
        row_html = "\n".join(
            f'          <tr style="border-bottom: 1px solid #e0e0e0;">'
            f'<td style="color: #757575; width: 120px;"><strong>{label}</strong></td>'
            f'<td style="font-family: monospace;">{value}</td></tr>'
            for label, value in rows
        )
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>Vigil {notice.source.title()}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
             background: #f5f5f5; margin: 0; padding: 24px;">
  <table width="600" cellpadding="0" cellspacing="0"
         style="background: #ffffff; border-radius: 8px; margin: 0 auto;">
    <tr>
      <td style="background: {color}; padding: 20px 28px; border-radius: 8px 8px 0 0;">
        <h1 style="color: #ffffff; margin: 0; font-size: 20px;">
          {html.escape(notice.title)} &middot; {severity_label}
        </h1>
      </td>
    </tr>
    <tr>
      <td style="padding: 24px 28px;">
        <table width="100%" cellpadding="6" cellspacing="0"
               style="border-collapse: collapse; margin-bottom: 20px;">
{row_html}
        </table>
        <p style="color: #212121; line-height: 1.6; margin: 0 0 20px;">{html.escape(notice.summary)}</p>
      </td>
    </tr>
    <tr>
      <td style="background: #f5f5f5; padding: 12px 28px; border-radius: 0 0 8px 8px;
                 font-size: 12px; color: #9e9e9e;">
        ID: {notice.notice_id}
      </td>
    </tr>
  </table>
</body>
</html>"""
