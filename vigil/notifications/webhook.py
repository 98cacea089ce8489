"""Generic JSON webhook notification channel for Vigil.

Posts the Notice payload as a JSON body to the configured endpoint.  A
rule's channel configuration may carry its own ``url`` which takes
precedence over the default endpoint.
"""

from __future__ import annotations

import httpx
import structlog

from vigil.models.notices import Notice
from vigil.models.rules import ChannelKind, ChannelSpec
from vigil.notifications.manager import NotificationChannel

_log = structlog.get_logger(component="notifications.webhook")


class WebhookNotificationChannel(NotificationChannel):
    """Delivers notices by POSTing a JSON payload to a configurable URL.

    Args:
        url:       Default endpoint URL (must be HTTPS in production).
        headers:   Optional extra headers (e.g. Authorization).
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.WEBHOOK

    async def send(self, notice: Notice, spec: ChannelSpec) -> bool:
        """POST *notice* as JSON.  Returns True on a 2xx response."""
        url = str(spec.configuration.get("url") or self._url)
        payload = notice.to_payload()
        payload["channel_id"] = spec.channel_id
        request_headers = {
            "Content-Type": "application/json",
            **self._headers,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=request_headers)
                if response.is_success:
                    return True
                _log.warning(
                    "webhook_non_2xx_response",
                    status_code=response.status_code,
                    body=response.text[:200],
                    notice_id=notice.notice_id,
                )
                return False
        except httpx.TimeoutException:
            _log.warning("webhook_request_timeout", notice_id=notice.notice_id, url=url)
            return False
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", error=str(exc), notice_id=notice.notice_id)
            return False
