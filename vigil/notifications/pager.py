"""Pager channel: PagerDuty Events API v2.

Notices are sent as ``trigger`` events keyed by their subject and metric
so that repeated pages for the same rule collapse into one incident.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from vigil.models.notices import Notice
from vigil.models.rules import ChannelKind, ChannelSpec, Severity
from vigil.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.pager")

EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"

_PAGER_SEVERITY: dict[Severity, str] = {
    Severity.LOW: "info",
    Severity.MEDIUM: "warning",
    Severity.HIGH: "error",
    Severity.CRITICAL: "critical",
}


class PagerNotificationChannel(NotificationChannel):
    def __init__(
        self,
        routing_key: str,
        events_url: str = EVENTS_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not routing_key:
            raise ValueError("Pager routing_key must not be empty")
        self._routing_key = routing_key
        self._events_url = events_url
        self._timeout = timeout
        self._transport = transport

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.PAGER

    async def send(self, notice: Notice, spec: ChannelSpec) -> bool:
        event = self._build_event(notice, spec)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._events_url, json=event)
                # Events API answers 202 Accepted
                if response.is_success:
                    return True
                _log.warning(
                    "pager_non_2xx_response",
                    status_code=response.status_code,
                    body=response.text[:200],
                    notice_id=notice.notice_id,
                )
                return False
        except httpx.TimeoutException:
            _log.warning("pager_request_timeout", notice_id=notice.notice_id)
            return False
        except httpx.HTTPError as exc:
            _log.warning("pager_http_error", error=str(exc), notice_id=notice.notice_id)
            return False

    def _build_event(self, notice: Notice, spec: ChannelSpec) -> dict[str, Any]:
        routing_key = str(spec.configuration.get("routing_key") or self._routing_key)
        return {
            "routing_key": routing_key,
            "event_action": "trigger",
            "dedup_key": f"vigil:{notice.source}:{notice.subject}:{notice.metric}",
            "payload": {
                "summary": notice.summary[:1024],
                "source": notice.subject,
                "severity": _PAGER_SEVERITY[notice.severity],
                "timestamp": notice.detected_at.isoformat(),
                "component": notice.metric,
                "custom_details": notice.to_payload(),
            },
        }
