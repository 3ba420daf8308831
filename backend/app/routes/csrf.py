"""
RentGate Backend - CSRF Token Route
====================================

What:  GET /api/csrf-token, the only way a client obtains a CSRF token.
How:   Mints a token with the app's CsrfGuard, returns it in the body and
       sets it as the `csrf-token` cookie (httpOnly, SameSite=strict, Secure
       in production, 1 hour).

The frontend calls this once per page load (or after a 403 "Invalid CSRF
token") and echoes the value in the `x-csrf-token` header of every
POST/PUT/PATCH/DELETE.
"""

import logging

from fastapi import APIRouter, Request, Response

from app.schemas.auth import CsrfTokenResponse
from app.services.csrf_service import CsrfGuard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Security"])


@router.get(
    "/csrf-token",
    response_model=CsrfTokenResponse,
    summary="Issue a CSRF token",
)
async def issue_csrf_token(request: Request, response: Response) -> CsrfTokenResponse:
    guard: CsrfGuard = request.app.state.csrf_guard
    token = guard.issue_token()
    response.set_cookie(value=token, **guard.cookie_options())
    # Tokens must never be served from a cache
    response.headers["Cache-Control"] = "no-store"
    logger.debug("Issued CSRF token")
    return CsrfTokenResponse(csrf_token=token)
