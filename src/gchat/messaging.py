"""Push transport over the Firebase Cloud Messaging HTTP v1 API.

Messages are data-only so the client's message handler always runs, even
when the app is backgrounded. A multicast is one concurrent batch of
single-target sends; every token gets its own SendResult.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import structlog

from gchat.models.notifications import SendResult

if TYPE_CHECKING:
    from gchat.config import MessagingSettings

log = structlog.get_logger()


def build_http_client(settings: MessagingSettings) -> httpx.AsyncClient:
    """Create the shared FCM httpx client. Called once at startup."""
    return httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={
            "Authorization": f"Bearer {settings.access_token}",
            "User-Agent": "gchat/1.0",
        },
        limits=httpx.Limits(
            max_connections=20,
            max_keepalive_connections=10,
        ),
    )


def build_message(token: str, data: dict[str, str]) -> dict:
    """FCM v1 message body: high-priority, data-only."""
    return {
        "message": {
            "token": token,
            "data": data,
            "android": {"priority": "high"},
            "apns": {
                "headers": {"apns-priority": "10"},
                "payload": {"aps": {"content-available": 1}},
            },
        }
    }


def _error_status(response: httpx.Response) -> str:
    """Pull the FCM error status (e.g. ``UNREGISTERED``) out of an error body.

    Error bodies from proxies and gateways don't always follow the FCM shape,
    so anything unexpected falls back to ``HTTP_<status>``.
    """
    fallback = f"HTTP_{response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    error = body.get("error")
    if not isinstance(error, dict):
        return str(error) if isinstance(error, str) and error else fallback
    details = error.get("details")
    if not isinstance(details, list):
        details = []
    for detail in details:
        if isinstance(detail, dict) and detail.get("errorCode"):
            return str(detail["errorCode"])
    return str(error.get("status") or fallback)


class FcmTransport:
    """FCM push transport implementing PushTransportProtocol."""

    def __init__(self, client: httpx.AsyncClient, project_id: str) -> None:
        self._client = client
        self._path = f"/projects/{project_id}/messages:send"

    async def send(self, token: str, data: dict[str, str]) -> SendResult:
        """Send to one token. Never raises; failures come back in the result."""
        try:
            response = await self._client.post(self._path, json=build_message(token, data))
        except httpx.HTTPError as exc:
            log.warning("push_send_network_error", token_prefix=token[:20], error=str(exc))
            return SendResult(token=token, success=False, error=type(exc).__name__)

        if not response.is_success:
            status = _error_status(response)
            log.warning(
                "push_send_failed",
                token_prefix=token[:20],
                status_code=response.status_code,
                error=status,
            )
            return SendResult(token=token, success=False, error=status)

        return SendResult(token=token, success=True)

    async def send_multicast(self, tokens: list[str], data: dict[str, str]) -> list[SendResult]:
        """Send the same payload to every token. Results are in ``tokens`` order."""
        if not tokens:
            return []
        results = await asyncio.gather(*(self.send(token, data) for token in tokens))
        log.info(
            "push_multicast_complete",
            success_count=sum(r.success for r in results),
            failure_count=sum(not r.success for r in results),
        )
        return list(results)
