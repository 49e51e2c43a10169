"""
Notification dispatcher: order status pushes to a table's devices.

notify() always resolves with {sent, total} and never raises into the
caller; zero recipients and delivery failures are normal outcomes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from rest_api.models import PushToken
from rest_api.services.integrations.push_sender import FcmSender, get_push_sender
from shared.config.logging import push_logger as logger
from shared.infrastructure.db import SessionLocal
from shared.utils.validators import normalize_table_label

# status -> (emoji, title, body)
STATUS_MESSAGES: dict[str, tuple[str, str, str]] = {
    "pendiente": ("⏳", "Pedido Recibido", "Tu pedido ha sido recibido y será procesado pronto"),
    "preparando": ("👨‍🍳", "¡Preparando tu Pedido!", "Nuestro chef está preparando tu orden"),
    "listo": ("✅", "¡Pedido Listo!", "Tu pedido está listo para ser servido"),
    "entregado": ("🎉", "¡Buen Provecho!", "Disfruta tu comida"),
}


def status_message(status: str) -> tuple[str, str]:
    """(title, body) shown to the customer for a status."""
    emoji, title, body = STATUS_MESSAGES.get(
        status, ("📋", "Actualización", f"Estado: {status}")
    )
    return f"{emoji} {title}", body


class NotificationDispatcher:
    """Sends status pushes to every active token of a table."""

    def __init__(
        self,
        sender: FcmSender | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self._sender = sender
        self._session_factory = session_factory

    @property
    def sender(self) -> FcmSender:
        return self._sender or get_push_sender()

    async def notify(
        self,
        table: str,
        tenant_id: int,
        status: str,
        branch_id: int | None = None,
    ) -> dict[str, int]:
        table_key = normalize_table_label(table)
        db = self._session_factory()
        try:
            query = select(PushToken).where(
                PushToken.tenant_id == tenant_id,
                PushToken.table_key == table_key,
                PushToken.active.is_(True),
            )
            if branch_id is not None:
                # Tokens registered without a site follow every site
                query = query.where(
                    or_(PushToken.branch_id == branch_id, PushToken.branch_id.is_(None))
                )
            tokens = db.scalars(query).all()

            if not tokens:
                logger.info("No push tokens for table", table=table, tenant_id=tenant_id)
                return {"sent": 0, "total": 0}

            title, body = status_message(status)
            data = {"estado": status, "mesa": table}
            results = await asyncio.gather(
                *(self.sender.send(t.token, title, body, data) for t in tokens)
            )

            now = datetime.now(timezone.utc)
            sent = 0
            for token, result in zip(tokens, results):
                if result.success:
                    sent += 1
                    token.last_used_at = now
                elif result.invalid_token:
                    token.active = False
                    logger.info("Push token deactivated", token_id=token.id)
            db.commit()

            logger.info(
                "Order status notifications sent",
                table=table,
                tenant_id=tenant_id,
                status=status,
                sent=sent,
                total=len(tokens),
            )
            return {"sent": sent, "total": len(tokens)}

        except Exception as e:
            db.rollback()
            logger.error("Order status notification failed", table=table, tenant_id=tenant_id, error=str(e))
            return {"sent": 0, "total": 0}
        finally:
            db.close()


_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get the singleton dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher
