"""
Firebase Cloud Messaging sender (HTTP v1 API).

Sends one notification to one device token. Never raises: every outcome
is reported through PushSendResult so callers can deactivate tokens the
service reports as invalid.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from shared.config.logging import push_logger as logger, mask_token
from shared.config.settings import settings

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

# FCM error codes meaning the device token will never work again
INVALID_TOKEN_CODES = frozenset({"UNREGISTERED", "INVALID_ARGUMENT"})


@dataclass
class PushSendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None
    # True when FCM reported the token as unknown or malformed
    invalid_token: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message_id": self.message_id,
            "error": self.error,
            "invalid_token": self.invalid_token,
        }


def build_message(token: str, title: str, body: str, data: dict[str, str] | None = None) -> dict[str, Any]:
    """FCM v1 message with the per-platform options the customer app expects."""
    return {
        "message": {
            "token": token,
            "notification": {"title": title, "body": body},
            "data": {**(data or {}), "timestamp": str(int(time.time() * 1000))},
            "android": {
                "priority": "high",
                "notification": {
                    "sound": "default",
                    "channel_id": "order-updates",
                    "default_vibrate_timings": True,
                },
            },
            "apns": {
                "headers": {"apns-priority": "10", "apns-push-type": "alert"},
                "payload": {"aps": {"sound": "default", "badge": 1, "content-available": 1}},
            },
            "webpush": {
                "notification": {
                    "icon": "/icon-192.png",
                    "badge": "/icon-badge.png",
                    "requireInteraction": True,
                    "tag": "order-update",
                },
                "fcm_options": {"link": "/seguimiento.html"},
            },
        }
    }


def _fcm_error_code(response: httpx.Response) -> str | None:
    """Pull the FCM errorCode (or the Google status) out of an error body."""
    try:
        error = response.json().get("error", {})
    except ValueError:
        return None
    for detail in error.get("details", []) or []:
        code = detail.get("errorCode")
        if code:
            return code
    return error.get("status")


class FcmSender:
    """
    HTTP client for the FCM v1 send endpoint.

    The underlying httpx.AsyncClient is created lazily under a lock and
    reused for every send until close() is called on shutdown.
    """

    def __init__(
        self,
        project_id: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
    ):
        self.project_id = project_id if project_id is not None else settings.fcm_project_id
        self.access_token = access_token if access_token is not None else settings.fcm_access_token
        self.timeout = timeout if timeout is not None else settings.fcm_timeout_seconds
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock: Optional[asyncio.Lock] = None
        self._init_lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.project_id and self.access_token)

    def _get_lock(self) -> asyncio.Lock:
        if self._client_lock is None:
            with self._init_lock:
                if self._client_lock is None:
                    self._client_lock = asyncio.Lock()
        return self._client_lock

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None and not self._client.is_closed:
            return self._client

        async with self._get_lock():
            if self._client is None or self._client.is_closed:
                self._client = httpx.AsyncClient(
                    timeout=self.timeout,
                    limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client. Called on application shutdown."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> PushSendResult:
        if not token:
            return PushSendResult(success=False, error="No token provided")
        if not self.configured:
            logger.warning("FCM not configured, push skipped", token=mask_token(token))
            return PushSendResult(success=False, error="FCM not configured")

        url = FCM_SEND_URL.format(project_id=self.project_id)
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json; charset=UTF-8",
        }

        try:
            client = await self._get_client()
            response = await client.post(url, headers=headers, json=build_message(token, title, body, data))
        except httpx.HTTPError as e:
            logger.error("FCM request failed", token=mask_token(token), error=str(e))
            return PushSendResult(success=False, error=str(e))

        if response.status_code == 200:
            try:
                message_id = response.json().get("name")
            except ValueError:
                message_id = None
            logger.debug("Push sent", token=mask_token(token), message_id=message_id)
            return PushSendResult(success=True, message_id=message_id)

        code = _fcm_error_code(response)
        invalid = response.status_code == 404 or code in INVALID_TOKEN_CODES
        logger.warning(
            "FCM rejected push",
            token=mask_token(token),
            status_code=response.status_code,
            fcm_error=code,
            invalid_token=invalid,
        )
        return PushSendResult(
            success=False,
            error=code or f"HTTP {response.status_code}",
            invalid_token=invalid,
        )


_sender: FcmSender | None = None


def get_push_sender() -> FcmSender:
    """Get the singleton FCM sender."""
    global _sender
    if _sender is None:
        _sender = FcmSender()
    return _sender


async def close_push_sender() -> None:
    global _sender
    if _sender is not None:
        await _sender.close()
        _sender = None
