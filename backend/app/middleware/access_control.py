"""
RentGate Backend - Access Control Middleware
=============================================

What:  Enforces the access policy in front of every route.
Why:   Authentication, role checks, tenant scoping, CSRF and rate limiting
       must run before any handler, including handlers that live outside
       this service's routers.
How:   Builds an AccessRequest from the Starlette request, asks AccessPolicy
       for a decision and renders it:
           ALLOW     → call the next app, then attach decision headers
           REDIRECT  → RedirectResponse (301 legacy URL, 302 login)
           DENY      → {"success": false, "message": ...} with the status
Who:   Registered by create_app(); one instance per application.

Failure handling:
    This middleware sits outside FastAPI's exception handlers. Anything that
    goes wrong while evaluating the policy is logged with a stack trace here
    and answered with a generic 500 envelope. Exceptions raised by downstream
    handlers are not caught here.

The evaluated Session is stored on request.state.session so that handlers
and the access log can see who called without re-reading cookies.
"""

import logging
import time
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.types import ASGIApp

from app.middleware.request_id import request_id_var
from app.services.access_policy import (
    MSG_INTERNAL_ERROR,
    AccessDecision,
    AccessPolicy,
    AccessRequest,
    Outcome,
)
from app.services.session_service import ANONYMOUS

logger = logging.getLogger(__name__)


def error_response(
    status_code: int, message: str, headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """The `{success: false, message}` envelope shared by middleware and handlers."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers or None,
    )


class AccessControlMiddleware(BaseHTTPMiddleware):
    """Renders AccessPolicy decisions as HTTP responses."""

    def __init__(self, app: ASGIApp, policy: AccessPolicy):
        super().__init__(app)
        self.policy = policy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        try:
            decision = self.policy.evaluate(
                AccessRequest(
                    method=method,
                    path=path,
                    headers=request.headers,
                    cookies=request.cookies,
                )
            )
        except Exception:
            logger.error(
                "Access control failure on %s %s [%s]",
                method,
                path,
                request_id_var.get(""),
                exc_info=True,
            )
            request.state.session = ANONYMOUS
            return error_response(500, MSG_INTERNAL_ERROR)

        request.state.session = decision.session
        self._log_decision(method, decision, start_time)

        if decision.outcome is Outcome.REDIRECT:
            target = request.url.replace(path=decision.location, query="")
            return RedirectResponse(url=str(target), status_code=decision.status_code)

        if decision.outcome is Outcome.DENY:
            return error_response(decision.status_code, decision.message, decision.headers)

        response = await call_next(request)
        for name, value in decision.headers.items():
            response.headers[name] = value
        return response

    @staticmethod
    def _log_decision(method: str, decision: AccessDecision, start_time: float) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        role = decision.session.role.value if decision.session.role else "anonymous"

        if decision.reason == "static":
            level = logging.DEBUG
        elif decision.outcome is Outcome.DENY:
            level = logging.WARNING
        else:
            level = logging.INFO

        if decision.reason == "no_policy":
            message = "No access policy found for %s %s, allowing (role=%s impersonating=%s %.1fms)"
            args = (method, decision.path, role, decision.session.is_impersonating, duration_ms)
        else:
            message = "%s %s %s (%s) role=%s impersonating=%s %.1fms"
            args = (
                decision.outcome.value,
                method,
                decision.path,
                decision.reason,
                role,
                decision.session.is_impersonating,
                duration_ms,
            )

        logger.log(
            level,
            message,
            *args,
            extra={
                "request_id": request_id_var.get(""),
                "method": method,
                "path": decision.path,
                "role": role,
                "outcome": decision.outcome.value,
                "reason": decision.reason,
                "duration_ms": round(duration_ms, 2),
            },
        )
