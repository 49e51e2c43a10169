"""
Tests for push token registration and order status notifications.
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import select

from rest_api.models import PushToken
from rest_api.services.domain import PushTokenService
from rest_api.services.integrations.notification_dispatcher import (
    NotificationDispatcher,
    status_message,
)
from rest_api.services.integrations.push_sender import FcmSender, PushSendResult
from shared.utils import schemas


def register_token(client, token="tok-1", table="Mesa 4", restaurant="La Picada", **extra):
    return client.post(
        "/api/push/register",
        json={"token": token, "table": table, "restaurant": restaurant, **extra},
    )


def fcm_sender(handler):
    """FcmSender whose HTTP client answers through `handler`."""
    sender = FcmSender(project_id="comandas-test", access_token="ya29.test")
    sender._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return sender


class TestPushTokenEndpoints:
    def test_register_without_auth(self, client, seed_tenant, seed_branch):
        response = register_token(client)

        assert response.status_code == 200
        assert response.json()["data"]["table"] == "Mesa 4"
        assert response.json()["data"]["active"] is True

    def test_register_is_an_upsert(self, client, db_session, seed_tenant, seed_branch):
        register_token(client, table="Mesa 4")
        register_token(client, table="Mesa 7")

        tokens = db_session.scalars(select(PushToken)).all()
        assert len(tokens) == 1
        assert tokens[0].table_key == "mesa 7"

    def test_register_unknown_restaurant(self, client, seed_tenant):
        response = register_token(client, restaurant="Fantasma")

        assert response.status_code == 404

    def test_unregister(self, client, seed_tenant, seed_branch):
        register_token(client)

        response = client.post("/api/push/unregister", json={"token": "tok-1"})

        assert response.json()["data"]["active"] is False

    def test_unregister_unknown_token(self, client, seed_tenant):
        response = client.post("/api/push/unregister", json={"token": "nope"})

        assert response.status_code == 404

    def test_test_push_reports_unconfigured_fcm(self, client, auth_headers):
        response = client.post("/api/push/test", json={"token": "tok-1"}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["data"]["error"] == "FCM not configured"

    def test_test_push_requires_auth(self, client):
        response = client.post("/api/push/test", json={"token": "tok-1"})

        assert response.status_code == 401


class TestFcmSender:
    async def test_success_returns_message_id(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            captured["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"name": "projects/comandas-test/messages/1"})

        result = await fcm_sender(handler).send("tok-1", "Hola", "Cuerpo", {"estado": "listo"})

        assert result.success is True
        assert result.message_id == "projects/comandas-test/messages/1"
        assert captured["auth"] == "Bearer ya29.test"
        message = captured["body"]["message"]
        assert message["token"] == "tok-1"
        assert message["data"]["estado"] == "listo"
        assert message["android"]["priority"] == "high"

    async def test_unregistered_token_is_flagged_invalid(self):
        def handler(request):
            return httpx.Response(
                404,
                json={"error": {"status": "NOT_FOUND", "details": [{"errorCode": "UNREGISTERED"}]}},
            )

        result = await fcm_sender(handler).send("tok-1", "Hola", "Cuerpo")

        assert result.success is False
        assert result.invalid_token is True
        assert result.error == "UNREGISTERED"

    async def test_transport_error_is_reported(self):
        def handler(request):
            raise httpx.ConnectError("sin red")

        result = await fcm_sender(handler).send("tok-1", "Hola", "Cuerpo")

        assert result.success is False
        assert result.invalid_token is False

    async def test_unconfigured_sender_skips(self):
        result = await FcmSender(project_id="", access_token="").send("tok-1", "Hola", "Cuerpo")

        assert result.success is False


class TestNotificationDispatcher:
    @pytest.fixture
    def tokens(self, db_session, seed_tenant, seed_branch):
        rows = [
            PushToken(token="ok", tenant_id=seed_tenant.id, branch_id=seed_branch.id,
                      table_label="Mesa 4", table_key="mesa 4"),
            PushToken(token="dead", tenant_id=seed_tenant.id, branch_id=None,
                      table_label="mesa 4", table_key="mesa 4"),
            PushToken(token="other-table", tenant_id=seed_tenant.id, branch_id=seed_branch.id,
                      table_label="Mesa 5", table_key="mesa 5"),
        ]
        db_session.add_all(rows)
        db_session.commit()
        return rows

    async def test_notify_counts_and_deactivates_invalid(
        self, db_session, seed_tenant, seed_branch, tokens, session_factory
    ):
        sender = AsyncMock(spec=FcmSender)
        sender.send.side_effect = lambda token, *args: (
            PushSendResult(success=True, message_id="m1")
            if token == "ok"
            else PushSendResult(success=False, error="UNREGISTERED", invalid_token=True)
        )
        dispatcher = NotificationDispatcher(sender=sender, session_factory=session_factory)

        result = await dispatcher.notify("MESA 4", seed_tenant.id, "listo", branch_id=seed_branch.id)

        assert result == {"sent": 1, "total": 2}
        title, body = status_message("listo")
        sender.send.assert_any_call("ok", title, body, {"estado": "listo", "mesa": "MESA 4"})
        db_session.expire_all()
        assert db_session.scalar(select(PushToken.active).where(PushToken.token == "dead")) is False

    async def test_no_recipients(self, seed_tenant, session_factory):
        sender = AsyncMock(spec=FcmSender)
        dispatcher = NotificationDispatcher(sender=sender, session_factory=session_factory)

        result = await dispatcher.notify("Mesa 99", seed_tenant.id, "listo")

        assert result == {"sent": 0, "total": 0}
        sender.send.assert_not_called()

    async def test_send_test_updates_token(self, db_session, tokens):
        sender = AsyncMock(spec=FcmSender)
        sender.send.return_value = PushSendResult(success=False, error="UNREGISTERED", invalid_token=True)

        result = await PushTokenService(db_session).send_test(schemas.TestPushRequest(token="ok"), sender=sender)

        assert result.invalid_token is True
        db_session.refresh(tokens[0])
        assert tokens[0].active is False

    def test_status_messages(self):
        assert status_message("entregado") == ("🎉 ¡Buen Provecho!", "Disfruta tu comida")
        assert status_message("raro")[1] == "Estado: raro"
