"""Correlation ID middleware.

Tags every request with a correlation ID so the log lines of one chat
send (message stored, incidents, alerts) can be tied together.

Pure ASGI rather than BaseHTTPMiddleware, which misbehaves with asyncpg
connections across event loops.
"""

import re
import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from kidguard.logging_config import correlation_id_ctx, get_logger

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Client-supplied IDs are echoed into logs and headers
_VALID_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

# Probe traffic is not worth a pair of log lines per hit
_QUIET_PATHS = frozenset({"/health", "/health/live", "/health/ready"})


def _resolve_correlation_id(scope: Scope) -> str:
    for name, value in scope.get("headers", []):
        if name == b"x-correlation-id":
            candidate = value.decode("latin-1")
            if _VALID_CORRELATION_ID.match(candidate):
                return candidate
            break
    return str(uuid.uuid4())


class CorrelationIdMiddleware:
    """Sets correlation_id_ctx for the request and echoes it in the response.

    A well-formed incoming X-Correlation-ID is reused; anything else is
    replaced with a fresh UUID.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        correlation_id = _resolve_correlation_id(scope)
        token = correlation_id_ctx.set(correlation_id)

        method = scope.get("method", "")
        path = scope.get("path", "")
        quiet = path in _QUIET_PATHS
        start_time = time.perf_counter()
        status_code: int | None = None

        if not quiet:
            client = scope.get("client")
            logger.info(
                "Request started",
                method=method,
                path=path,
                client_ip=client[0] if client else None,
            )

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code

            if message["type"] == "http.response.start":
                status_code = message.get("status")
                headers = list(message.get("headers", []))
                headers.append(
                    (CORRELATION_ID_HEADER.lower().encode(), correlation_id.encode())
                )
                message = {**message, "headers": headers}

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception(
                "Request failed",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        else:
            if not quiet:
                logger.info(
                    "Request completed",
                    method=method,
                    path=path,
                    status_code=status_code,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
        finally:
            correlation_id_ctx.reset(token)
