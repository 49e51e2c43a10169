"""
Mandao delivery platform client.

Outbound status sync for orders that came from the platform. Called by
the outbox processor; failures raise so the event is retried.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Optional

import httpx

from shared.config.logging import mandao_logger as logger
from shared.config.settings import settings


class MandaoSyncError(Exception):
    """The platform did not acknowledge a status update."""


class MandaoClient:
    """
    HTTP client for the Mandao API.

    Reusable httpx.AsyncClient created lazily under a lock.
    """

    def __init__(
        self,
        base_url: str | None = None,
        secret: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.mandao_api_url).rstrip("/")
        self.secret = secret if secret is not None else settings.mandao_secret
        self.timeout = timeout if timeout is not None else settings.mandao_timeout_seconds
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock: Optional[asyncio.Lock] = None
        self._init_lock = threading.Lock()

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
                self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def push_status(self, external_order_id: str, status: str) -> None:
        """
        Tell the platform an order changed status.

        Raises:
            MandaoSyncError: non-2xx answer, `success: false` body or a
                transport error.
        """
        if not external_order_id:
            return

        url = f"{self.base_url}/jcrt/status-update"
        body = {"mandaoOrderId": external_order_id, "status": status, "secret": self.secret}

        logger.info("Pushing status to Mandao", external_order_id=external_order_id, status=status)
        try:
            client = await self._get_client()
            response = await client.post(url, json=body)
        except httpx.HTTPError as e:
            raise MandaoSyncError(f"Error de conexión con Mandao: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success or not data.get("success", False):
            message = data.get("message") or response.reason_phrase
            raise MandaoSyncError(
                f"Mandao rechazó la actualización ({response.status_code}): {message}"
            )

        logger.info("Mandao status synced", external_order_id=external_order_id, status=status)


_client: MandaoClient | None = None


def get_mandao_client() -> MandaoClient:
    """Get the singleton Mandao client."""
    global _client
    if _client is None:
        _client = MandaoClient()
    return _client


async def close_mandao_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
