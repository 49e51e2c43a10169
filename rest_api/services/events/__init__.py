"""
Event Services - transactional outbox for order side effects.

Provides:
- write_outbox_event / write_order_status_events: queue side effects in
  the business transaction
- OutboxProcessor: asynchronous delivery with retries
"""

from .outbox_service import (
    write_outbox_event,
    write_order_status_events,
)

from .outbox_processor import (
    OutboxProcessor,
    get_outbox_processor,
    start_outbox_processor,
    stop_outbox_processor,
    process_pending_events_once,
)

__all__ = [
    "write_outbox_event",
    "write_order_status_events",
    "OutboxProcessor",
    "get_outbox_processor",
    "start_outbox_processor",
    "stop_outbox_processor",
    "process_pending_events_once",
]
