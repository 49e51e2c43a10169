"""
Outbox service for transactional side effects.

Push notifications and delivery-platform status updates are written to
the outbox table atomically with the order change. The processor reads
and delivers them asynchronously.

Usage in services:
    1. Perform business logic (change an order status)
    2. Call write_order_status_events() with the same db session
    3. Commit the transaction (both order and events are atomic)

Example:
    order.status = "listo"
    write_order_status_events(db, order)
    safe_commit(db)
"""

import json
from typing import Any

from sqlalchemy.orm import Session

from rest_api.models import Order, OutboxEvent, OutboxStatus
from shared.config.constants import EventType
from shared.config.logging import get_logger

logger = get_logger(__name__)


def write_outbox_event(
    db: Session,
    tenant_id: int,
    event_type: str,
    aggregate_type: str,
    aggregate_id: int,
    payload: dict[str, Any],
) -> OutboxEvent:
    """
    Write an event to the outbox table.

    MUST be called within the same transaction as the business operation.
    The event will be delivered by the outbox processor.

    Args:
        db: SQLAlchemy session (same session as business operation)
        tenant_id: Tenant ID for multi-tenant isolation
        event_type: EventType constant
        aggregate_type: Type of aggregate (e.g., "order")
        aggregate_id: ID of the aggregate
        payload: Event payload as dict (will be JSON serialized)
    """
    outbox_event = OutboxEvent(
        tenant_id=tenant_id,
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        payload=json.dumps(payload),
        status=OutboxStatus.PENDING,
        retry_count=0,
    )
    db.add(outbox_event)
    # Don't flush/commit - let the caller control the transaction
    logger.debug(
        "Outbox event queued",
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
    )
    return outbox_event


def write_order_status_events(db: Session, order: Order) -> list[OutboxEvent]:
    """
    Queue the side effects of an order status change.

    Always queues the table push notification; also queues the
    delivery-platform sync when the order came from it.
    """
    events = [
        write_outbox_event(
            db=db,
            tenant_id=order.tenant_id,
            event_type=EventType.ORDER_STATUS_CHANGED,
            aggregate_type="order",
            aggregate_id=order.id,
            payload={
                "branch_id": order.branch_id,
                "table": order.table_label,
                "status": order.status,
            },
        )
    ]

    if order.external_order_id:
        events.append(
            write_outbox_event(
                db=db,
                tenant_id=order.tenant_id,
                event_type=EventType.EXTERNAL_STATUS_SYNC,
                aggregate_type="order",
                aggregate_id=order.id,
                payload={
                    "external_order_id": order.external_order_id,
                    "status": order.status,
                },
            )
        )

    return events
