"""ASGI middleware: security headers and request context."""

from __future__ import annotations

import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.logger import bind_contextvars, clear_contextvars, get_logger
from core.wide_event import clear_wide_event, get_wide_event, init_wide_event

logger = get_logger(__name__)

# Requests slower than this always produce a canonical log line
SLOW_REQUEST_MS = 1000


class SecurityHeadersMiddleware:
    """Adds security headers (CSP, HSTS, X-Frame-Options, etc.)."""

    SECURITY_HEADERS: list[tuple[bytes, bytes]] = [
        (b"x-content-type-options", b"nosniff"),
        (b"x-frame-options", b"DENY"),
        (b"referrer-policy", b"strict-origin-when-cross-origin"),
        (
            b"content-security-policy",
            b"default-src 'self'; img-src 'self' data:; frame-ancestors 'none'",
        ),
        (b"strict-transport-security", b"max-age=31536000; includeSubDomains"),
    ]

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Artifacts never change once written
        is_artifact = scope.get("path", "").startswith("/certificates/")

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                headers: list[tuple[bytes, bytes]] = list(message.get("headers", []))
                headers.extend(self.SECURITY_HEADERS)
                if is_artifact:
                    headers.append((b"cache-control", b"public, max-age=86400"))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)


class RequestContextMiddleware:
    """Binds a request id, times the request, emits one wide event at the end.

    The canonical ``request.completed`` line is always emitted for errors and
    slow requests; fast successful requests stay quiet.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        path = scope.get("path", "")
        client = scope.get("client")
        request_id = str(uuid.uuid4())

        event = init_wide_event()
        event["request_id"] = request_id
        event["http_method"] = scope.get("method", "UNKNOWN")
        event["http_path"] = path
        event["http_client_ip"] = client[0] if client else "unknown"
        bind_contextvars(request_id=request_id)

        response_status: int | None = None

        async def send_wrapper(message: Message) -> None:
            nonlocal response_status

            if message.get("type") == "http.response.start":
                response_status = int(message.get("status", 0))
                duration_ms = (time.perf_counter() - start_time) * 1000
                headers: list[tuple[bytes, bytes]] = list(message.get("headers", []))
                headers.append(
                    (b"x-request-duration-ms", f"{duration_ms:.2f}".encode())
                )
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers

            elif message.get("type") == "http.response.body" and not message.get(
                "more_body", False
            ):
                duration_ms = (time.perf_counter() - start_time) * 1000
                route = scope.get("route")
                wide = get_wide_event()
                wide["http_route"] = getattr(route, "path", None) or path
                wide["http_status_code"] = response_status
                wide["duration_ms"] = round(duration_ms, 2)
                wide["outcome"] = (
                    "success" if response_status and response_status < 400 else "error"
                )

                if (
                    response_status is None
                    or response_status >= 400
                    or duration_ms > SLOW_REQUEST_MS
                ):
                    logger.info("request.completed", **wide)

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            wide = get_wide_event()
            wide["duration_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
            wide["outcome"] = "exception"
            wide["exception_type"] = type(exc).__name__
            logger.info("request.completed", **wide)
            raise
        finally:
            clear_wide_event()
            clear_contextvars()
