"""
Outbound integrations: FCM push sender, notification dispatcher, Mandao client.
"""

from .push_sender import FcmSender, PushSendResult, get_push_sender, close_push_sender
from .notification_dispatcher import (
    NotificationDispatcher,
    get_notification_dispatcher,
    status_message,
)
from .mandao_client import MandaoClient, MandaoSyncError, get_mandao_client, close_mandao_client

__all__ = [
    "FcmSender",
    "PushSendResult",
    "get_push_sender",
    "close_push_sender",
    "NotificationDispatcher",
    "get_notification_dispatcher",
    "status_message",
    "MandaoClient",
    "MandaoSyncError",
    "get_mandao_client",
    "close_mandao_client",
]
