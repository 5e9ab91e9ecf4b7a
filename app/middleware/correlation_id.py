"""
Request context middleware for log tagging
Every request carries a correlation ID; requests addressed to an import
session also carry the session ID so a whole import can be followed in the logs
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import config

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
import_session_ctx: ContextVar[Optional[str]] = ContextVar("import_session_id", default=None)

SESSION_PATH = re.compile(r"/imports/sessions/([^/]+)")


def get_correlation_id() -> Optional[str]:
    """Get the correlation ID from the current context"""
    return correlation_id_ctx.get()


def set_correlation_id(correlation_id: Optional[str]) -> None:
    """Set the correlation ID in the current context"""
    correlation_id_ctx.set(correlation_id)


def get_import_session_id() -> Optional[str]:
    return import_session_ctx.get()


def set_import_session_id(session_id: Optional[str]) -> None:
    """Bind the import session of the current request; background runs inherit it"""
    import_session_ctx.set(session_id)


def session_id_from_path(path: str) -> Optional[str]:
    match = SESSION_PATH.search(path)
    return match.group(1) if match else None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle correlation IDs for request tracing

    - Extracts correlation ID from request headers (or generates a new one)
    - Binds the import session named in the path, if any
    - Adds the correlation ID to response headers
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(
            config.correlation_id_header,
            str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        set_import_session_id(session_id_from_path(request.url.path))
        request.state.correlation_id = correlation_id

        response = await call_next(request)

        response.headers[config.correlation_id_header] = correlation_id

        return response
