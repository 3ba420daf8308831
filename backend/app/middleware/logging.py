"""
RentGate Backend - Request Logging Middleware
==============================================

What:  One access log line per request: method, path, status, duration,
       caller role and client IP.
Why:   Monitoring and audit. Status codes alone show 401/403/429 spikes; the
       role column shows who was hitting them.
How:   Runs outside AccessControlMiddleware, so it logs denied requests too
       and can read the Session the access policy stored on request.state.

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, IP, role, request ID
    ❌ Don't log: request body, cookies, CSRF tokens, user IDs
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var
from app.services.rate_limiter import client_ip

logger = logging.getLogger("rentgate.access")

# Probes and docs; too frequent to be worth a line each
QUIET_PATHS = frozenset({"/health", "/favicon.ico"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log level follows the status code:
        5xx → ERROR, 4xx → WARNING, everything else → INFO
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        if path in QUIET_PATHS or path.startswith("/_next/"):
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")
        ip = client_ip(request.headers)
        session = getattr(request.state, "session", None)
        role = session.role.value if session is not None and session.role else "anonymous"

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] role=%s from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            role,
            ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "role": role,
                "client_ip": ip,
            },
        )

        return response
