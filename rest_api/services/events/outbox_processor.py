"""
Outbox processor for delivering side effects from the outbox table.

Reads PENDING events and dispatches them:
- ORDER_STATUS_CHANGED → notification dispatcher (push to the table)
- EXTERNAL_STATUS_SYNC → Mandao status update

Implements:
- Batch processing
- Retry on failure, dead letter (FAILED) after max retries
- PROCESSING status so parallel workers never deliver an event twice

Runs as an asyncio task started in the FastAPI lifespan.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rest_api.models import OutboxEvent, OutboxStatus
from rest_api.services.integrations.mandao_client import MandaoClient, get_mandao_client
from rest_api.services.integrations.notification_dispatcher import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from shared.config.constants import EventType
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal

logger = get_logger(__name__)


class OutboxProcessor:
    """
    Processes outbox events and delivers them to their collaborator.

    Status transitions: PENDING → PROCESSING → PUBLISHED | PENDING (retry) | FAILED
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        dispatcher: NotificationDispatcher | None = None,
        mandao_client: MandaoClient | None = None,
        *,
        batch_size: int | None = None,
        max_retries: int | None = None,
        poll_interval: float | None = None,
    ):
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._mandao_client = mandao_client
        self.batch_size = batch_size or settings.outbox_batch_size
        self.max_retries = max_retries or settings.outbox_max_retries
        self.poll_interval = poll_interval or settings.outbox_poll_interval_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the processor loop."""
        if self._running:
            logger.warning("Outbox processor already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Outbox processor started")

    async def stop(self) -> None:
        """Stop the processor gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Outbox processor stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                handled = await self.process_batch()
                if handled == 0:
                    await asyncio.sleep(self.poll_interval)
            except Exception as e:
                logger.error("Outbox processor error", error=str(e))
                await asyncio.sleep(self.poll_interval)

    async def process_batch(self) -> int:
        """
        Process one batch of PENDING events.

        Returns:
            Number of events handled (published, retried or failed).
        """
        db = self._session_factory()
        try:
            events = db.execute(
                select(OutboxEvent)
                .where(OutboxEvent.status == OutboxStatus.PENDING)
                .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
                .limit(self.batch_size)
                .with_for_update(skip_locked=True)  # Parallel workers skip claimed rows
            ).scalars().all()

            if not events:
                return 0

            event_ids = [e.id for e in events]
            db.execute(
                update(OutboxEvent)
                .where(OutboxEvent.id.in_(event_ids))
                .values(status=OutboxStatus.PROCESSING)
                .execution_options(synchronize_session=False)
            )
            db.commit()

            published = 0
            for event in events:
                if await self._deliver(event):
                    event.status = OutboxStatus.PUBLISHED
                    event.processed_at = datetime.now(timezone.utc)
                    event.last_error = None
                    published += 1
                else:
                    event.retry_count += 1
                    if event.retry_count >= self.max_retries:
                        event.status = OutboxStatus.FAILED
                        logger.error(
                            "Outbox event failed after max retries",
                            event_id=event.id,
                            event_type=event.event_type,
                        )
                    else:
                        event.status = OutboxStatus.PENDING

            db.commit()
            logger.info("Outbox batch processed", total=len(events), published=published)
            return len(events)

        except Exception as e:
            db.rollback()
            logger.error("Outbox batch processing failed", error=str(e))
            return 0
        finally:
            db.close()

    async def _deliver(self, event: OutboxEvent) -> bool:
        """Hand one event to its collaborator. False means retry later."""
        try:
            payload = json.loads(event.payload)

            if event.event_type == EventType.ORDER_STATUS_CHANGED:
                dispatcher = self._dispatcher or get_notification_dispatcher()
                await dispatcher.notify(
                    payload["table"],
                    event.tenant_id,
                    payload["status"],
                    branch_id=payload.get("branch_id"),
                )
            elif event.event_type == EventType.EXTERNAL_STATUS_SYNC:
                client = self._mandao_client or get_mandao_client()
                await client.push_status(payload["external_order_id"], payload["status"])
            else:
                event.last_error = f"Unknown event type: {event.event_type}"
                logger.warning("Unknown outbox event type", event_type=event.event_type)
                return False

            return True

        except Exception as e:
            event.last_error = str(e)
            logger.error(
                "Failed to deliver outbox event",
                event_id=event.id,
                event_type=event.event_type,
                error=str(e),
            )
            return False


# Singleton instance
_processor: OutboxProcessor | None = None


def get_outbox_processor() -> OutboxProcessor:
    """Get the singleton outbox processor instance."""
    global _processor
    if _processor is None:
        _processor = OutboxProcessor()
    return _processor


async def start_outbox_processor() -> None:
    """Start the outbox processor (FastAPI lifespan startup)."""
    await get_outbox_processor().start()


async def stop_outbox_processor() -> None:
    """Stop the outbox processor (FastAPI lifespan shutdown)."""
    await get_outbox_processor().stop()


async def process_pending_events_once() -> int:
    """Process pending outbox events once (manual triggering)."""
    return await get_outbox_processor().process_batch()
