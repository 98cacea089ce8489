"""Slack notification channel: Block Kit message via an incoming webhook."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from vigil.models.notices import Notice
from vigil.models.rules import ChannelKind, ChannelSpec, Severity
from vigil.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.slack")

_SEVERITY_EMOJI: dict[Severity, str] = {
    Severity.LOW: ":information_source:",
    Severity.MEDIUM: ":warning:",
    Severity.HIGH: ":rotating_light:",
    Severity.CRITICAL: ":fire:",
}


class SlackNotificationChannel(NotificationChannel):
    """Posts notices to a Slack incoming webhook.

    The channel configuration's ``recipient`` (a ``#channel`` name) is
    passed through as the message channel override when set.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not webhook_url.startswith("https://"):
            raise ValueError("Slack webhook_url must be an https:// URL")
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._transport = transport

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.SLACK

    async def send(self, notice: Notice, spec: ChannelSpec) -> bool:
        payload = self._build_payload(notice, spec)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._webhook_url, json=payload)
                if response.is_success:
                    return True
                _log.warning(
                    "slack_non_2xx_response",
                    status_code=response.status_code,
                    body=response.text[:200],
                    notice_id=notice.notice_id,
                )
                return False
        except httpx.TimeoutException:
            _log.warning("slack_request_timeout", notice_id=notice.notice_id)
            return False
        except httpx.HTTPError as exc:
            _log.warning("slack_http_error", error=str(exc), notice_id=notice.notice_id)
            return False

    def _build_payload(self, notice: Notice, spec: ChannelSpec) -> dict[str, Any]:
        emoji = _SEVERITY_EMOJI.get(notice.severity, ":bell:")
        header = f"{emoji} {notice.severity.value.upper()}: {notice.title}"
        fields = [
            {"type": "mrkdwn", "text": f"*Metric*\n`{notice.metric}`"},
            {"type": "mrkdwn", "text": f"*Value*\n{notice.value:.2f}"},
            {"type": "mrkdwn", "text": f"*Reference*\n{notice.reference:.2f}"},
            {"type": "mrkdwn", "text": f"*Detected*\n{notice.detected_at:%Y-%m-%d %H:%M:%S} UTC"},
        ]
        payload: dict[str, Any] = {
            "text": f"{header} {notice.summary}",
            "blocks": [
                {"type": "header", "text": {"type": "plain_text", "text": header[:150]}},
                {"type": "section", "text": {"type": "mrkdwn", "text": notice.summary}},
                {"type": "section", "fields": fields},
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"{notice.source} id `{notice.notice_id}`"}],
                },
            ],
        }
        if spec.recipient.startswith("#"):
            payload["channel"] = spec.recipient
        return payload
