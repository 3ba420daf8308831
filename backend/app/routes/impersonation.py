"""
RentGate Backend - Impersonation Routes
========================================

What:  Lets a property owner view the application as one of their tenants,
       and switch back.
How:   Impersonation never rewrites the owner's own `userId`/`role` cookies.
       It only adds two flags that the access policy turns into an
       effective "tenant" role on tenant routes:

           POST /api/impersonate           sets    isImpersonating=true
                                                   impersonatingTenantId=<id>
           POST /api/revert-impersonation  deletes both

Route Inventory:
    - /api/impersonate            owner only, CSRF protected
    - /api/revert-impersonation   owner or tenant, CSRF exempt (it is called
                                  from the tenant view)
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db_session
from app.exceptions import AuthenticationError, AuthorizationError
from app.schemas.auth import ErrorResponse, ImpersonateRequest, ImpersonationResponse
from app.services.route_policy import Role
from app.services.session_service import (
    IMPERSONATED_TENANT_COOKIE,
    IMPERSONATING_COOKIE,
    Session,
    SessionAuthenticator,
)
from app.services.tenant_service import tenant_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Impersonation"])

TENANT_DASHBOARD = "/tenant-dashboard"
OWNER_DASHBOARD = "/property-owner-dashboard"


def current_session(request: Request) -> Session:
    """
    Session evaluated by AccessControlMiddleware, or read from the cookies
    when the router is mounted without it.
    """
    session = getattr(request.state, "session", None)
    if session is None:
        session = SessionAuthenticator().authenticate(request.cookies)
    return session


def require_property_owner(session: Session = Depends(current_session)) -> Session:
    if not session.is_authenticated:
        raise AuthenticationError()
    if session.role is not Role.PROPERTY_OWNER:
        raise AuthorizationError(context={"role": session.role.value})
    return session


def _flag_cookie_options(settings: Settings) -> Dict[str, Any]:
    # Readable by the frontend, which shows an "exit tenant view" banner
    return {
        "path": "/",
        "max_age": settings.impersonation_max_age,
        "httponly": False,
        "secure": settings.is_production,
        "samesite": "strict",
    }


@router.post(
    "/impersonate",
    response_model=ImpersonationResponse,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Start viewing as one of the caller's tenants",
)
async def start_impersonation(
    body: ImpersonateRequest,
    request: Request,
    response: Response,
    session: Session = Depends(require_property_owner),
    db: AsyncSession = Depends(get_db_session),
) -> ImpersonationResponse:
    tenant = await tenant_service.get_owned_tenant(
        db, tenant_id=body.tenant_id, owner_id=session.user_id
    )

    options = _flag_cookie_options(request.app.state.settings)
    response.set_cookie(IMPERSONATING_COOKIE, "true", **options)
    response.set_cookie(IMPERSONATED_TENANT_COOKIE, tenant.id, **options)

    logger.info("Owner %s started impersonating tenant %s", session.user_id, tenant.id)
    return ImpersonationResponse(tenant_id=tenant.id, redirect=TENANT_DASHBOARD)


@router.post(
    "/revert-impersonation",
    response_model=ImpersonationResponse,
    summary="Return to the owner's own view",
)
async def revert_impersonation(
    request: Request,
    response: Response,
    session: Session = Depends(current_session),
) -> ImpersonationResponse:
    settings: Settings = request.app.state.settings
    for name in (IMPERSONATING_COOKIE, IMPERSONATED_TENANT_COOKIE):
        response.delete_cookie(name, path="/", secure=settings.is_production, samesite="strict")

    if session.impersonation.requested:
        logger.info(
            "User %s stopped impersonating tenant %s",
            session.user_id,
            session.impersonation.tenant_id,
        )
    return ImpersonationResponse(redirect=OWNER_DASHBOARD)
