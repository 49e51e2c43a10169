"""
Push token registry for customer devices following a table.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import PushToken
from rest_api.services.domain.tenant_service import TenantService
from rest_api.services.integrations.push_sender import FcmSender, PushSendResult, get_push_sender
from shared.config.logging import mask_token, push_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import NotFoundError
from shared.utils.schemas import (
    PushTokenOutput,
    RegisterPushTokenRequest,
    TestPushRequest,
    UnregisterPushTokenRequest,
)
from shared.utils.validators import normalize_table_label


def _to_output(token: PushToken) -> PushTokenOutput:
    return PushTokenOutput(
        id=token.id,
        table=token.table_label,
        active=token.active,
        last_used_at=token.last_used_at,
    )


class PushTokenService:
    def __init__(self, db: Session):
        self._db = db

    def register(self, body: RegisterPushTokenRequest) -> PushTokenOutput:
        """
        Upsert by token: a device that moves to another table (or restaurant)
        follows the new one and is reactivated.

        Raises:
            NotFoundError: unknown restaurant or site.
        """
        tenant, branch = TenantService(self._db).resolve(body.restaurant, body.branch)
        table = body.table.strip()

        token = self._db.scalar(select(PushToken).where(PushToken.token == body.token))
        if token is None:
            token = PushToken(token=body.token)
            self._db.add(token)

        token.tenant_id = tenant.id
        token.branch_id = branch.id if branch else None
        token.table_label = table
        token.table_key = normalize_table_label(table)
        token.active = True
        safe_commit(self._db)

        logger.info(
            "Push token registered",
            token=mask_token(body.token),
            tenant_id=tenant.id,
            branch_id=token.branch_id,
            table=table,
        )
        return _to_output(token)

    def unregister(self, body: UnregisterPushTokenRequest) -> PushTokenOutput:
        token = self._db.scalar(select(PushToken).where(PushToken.token == body.token))
        if token is None:
            raise NotFoundError("Token", token=mask_token(body.token))

        token.active = False
        safe_commit(self._db)
        logger.info("Push token unregistered", token=mask_token(body.token))
        return _to_output(token)

    async def send_test(self, body: TestPushRequest, sender: FcmSender | None = None) -> PushSendResult:
        """Send one message to one token; the outcome is reported, not raised."""
        sender = sender or get_push_sender()
        result = await sender.send(body.token, body.title, body.body, {"type": "test"})

        token = self._db.scalar(select(PushToken).where(PushToken.token == body.token))
        if token is not None:
            if result.success:
                token.last_used_at = datetime.now(timezone.utc)
            elif result.invalid_token:
                token.active = False
            safe_commit(self._db)
        return result
