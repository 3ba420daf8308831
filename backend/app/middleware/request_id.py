"""
RentGate Backend - Request ID Middleware
=========================================

What:  Assigns a correlation ID to each request and echoes it in the response.
Why:   Authorization denials are audited in the logs; the ID ties the access
       log line, the policy warning and the client's error report together.
How:   Reuses a well-formed X-Request-ID from the client, otherwise generates
       a short UUID. Stored in a ContextVar for loggers and on request.state
       for handlers.
When:  Outermost application middleware, so even denied requests get an ID.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local storage for the current request ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client-supplied IDs end up in log lines; only accept plain tokens
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _new_request_id() -> str:
    return str(uuid.uuid4())[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Use the client's X-Request-ID if it is a short plain token
        2. Otherwise generate a new 8-character ID
        3. Store in ContextVar and request.state
        4. Return it in the X-Request-ID response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")
        if not _VALID_REQUEST_ID.match(rid):
            rid = _new_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
