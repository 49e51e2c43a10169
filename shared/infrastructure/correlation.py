"""
Request correlation ids.

Every request gets an id (the caller's X-Request-ID when it is sane, a new
UUID otherwise). It is echoed in the response and stamped on every log line
written while the request is handled, so a waiter's failed order can be
traced across the order, stock and outbox logs.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"

# Client supplied ids end up in logs: keep them short and printable
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    return request_id_var.get()


def resolve_request_id(header_value: str | None) -> str:
    """The caller's id if well formed, otherwise a fresh UUID4."""
    if header_value and _VALID_REQUEST_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the request id to the context for the duration of the request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_var.set(request_id)
        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(token)


class CorrelationIdFilter:
    """Logging filter adding `request_id` ("-" outside a request) to records."""

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
