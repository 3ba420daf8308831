"""
RentGate Backend - Access Policy
=================================

What:  Decides, for one inbound request, whether to let it through, redirect
       it, or answer with a JSON error.
Why:   Keeps every cross-cutting rule (who may call what, under which token
       and rate state) in one synchronous, HTTP-free function that is easy
       to test exhaustively.
How:   evaluate() runs the checks in a fixed order and returns an
       AccessDecision; AccessControlMiddleware turns that into a response.

Evaluation order:
    1. static asset                         → allow
    2. GET /api/public-properties           → allow
    3. /properties/{id}                     → 301 /property-listings/{id}
    4. classify path (no rule)              → allow (logged)
    5. public route                         → allow
    6. no identity                          → 401 | 302 /login
    7. effective role not allowed           → 403 | 302 /login
    8. genuine tenant on another tenant     → 403 "Access denied"
    9. non-GET API call:
         rate limit exceeded                → 429
         CSRF required and invalid          → 403 (+ rate limit headers)
                                            → allow (+ rate limit headers)
   10.                                      → allow

The rate limiter wraps the CSRF check: every non-GET API call is counted,
including those that then fail CSRF validation.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional

from app.config import Settings
from app.services.csrf_service import CSRF_COOKIE, CSRF_HEADER, CsrfGuard
from app.services.rate_limiter import FixedWindowRateLimiter, client_ip
from app.services.route_policy import (
    ADMIN_API_PATHS,
    CSRF_EXEMPT_ROUTES,
    CSRF_SELF_HANDLED_ROUTES,
    DEFAULT_ROUTE_TABLE,
    RouteAccessEntry,
    RouteTable,
    is_public_endpoint,
    is_static_asset,
    legacy_redirect_target,
    normalize_path,
    tenant_id_from_path,
)
from app.services.session_service import ANONYMOUS, Session, SessionAuthenticator

logger = logging.getLogger(__name__)

# Only plain reads skip rate limiting and CSRF. CORS preflights never get
# this far: CORSMiddleware answers them.
SAFE_METHODS: FrozenSet[str] = frozenset({"GET"})

MSG_UNAUTHORIZED = "Unauthorized"
MSG_FORBIDDEN = "Forbidden"
MSG_ACCESS_DENIED = "Access denied"
MSG_INVALID_CSRF = "Invalid CSRF token"
MSG_TOO_MANY_REQUESTS = "Too many requests. Please try again later."
MSG_INTERNAL_ERROR = "Internal server error"


class Outcome(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    DENY = "deny"


@dataclass(frozen=True)
class AccessRequest:
    """The parts of an HTTP request the policy looks at."""

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AccessDecision:
    """
    Result of evaluating one request.

    reason is a short machine-friendly label used in logs and tests
    ("authorized", "forbidden", "csrf_invalid", ...).
    headers are attached to whatever response is finally sent.
    """

    outcome: Outcome
    reason: str
    path: str
    status_code: int = 200
    message: Optional[str] = None
    location: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    session: Session = ANONYMOUS

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW


class AccessPolicy:
    """
    Composition of route classifier, authenticator, impersonation resolver,
    CSRF guard and rate limiter.

    All collaborators are injected; from_settings() wires the defaults.
    """

    def __init__(
        self,
        *,
        csrf_guard: CsrfGuard,
        rate_limiter: FixedWindowRateLimiter,
        route_table: RouteTable = DEFAULT_ROUTE_TABLE,
        authenticator: Optional[SessionAuthenticator] = None,
        login_path: str = "/login",
    ):
        self.csrf_guard = csrf_guard
        self.rate_limiter = rate_limiter
        self.route_table = route_table
        self.authenticator = authenticator or SessionAuthenticator()
        self.login_path = login_path

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        route_table: Optional[RouteTable] = None,
    ) -> "AccessPolicy":
        csrf_guard = CsrfGuard(
            max_age=settings.csrf_token_max_age,
            secure=settings.is_production,
            exempt_routes=ADMIN_API_PATHS + CSRF_SELF_HANDLED_ROUTES + CSRF_EXEMPT_ROUTES,
        )
        if rate_limiter is None:
            rate_limiter = FixedWindowRateLimiter(
                limit=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window,
            )
        return cls(
            csrf_guard=csrf_guard,
            rate_limiter=rate_limiter,
            route_table=route_table or DEFAULT_ROUTE_TABLE,
            login_path=settings.login_path,
        )

    # ── Evaluation ────────────────────────────────────────────────────────

    def evaluate(self, request: AccessRequest) -> AccessDecision:
        method = request.method.upper()
        path = normalize_path(request.path)

        if is_static_asset(path):
            return self._allow(path, "static")
        if is_public_endpoint(method, path):
            return self._allow(path, "public_endpoint")

        target = legacy_redirect_target(path)
        if target is not None:
            return AccessDecision(
                outcome=Outcome.REDIRECT,
                reason="legacy_redirect",
                path=path,
                status_code=301,
                location=target,
            )

        match = self.route_table.match(path)
        session = self.authenticator.authenticate(request.cookies)

        if match is None:
            return self._allow(path, "no_policy", session)

        entry = match.entry
        if entry.is_public:
            return self._allow(path, "public_route", session)

        if not session.is_authenticated:
            return self._reject(entry, path, 401, MSG_UNAUTHORIZED, "unauthenticated", session)

        effective_role = session.effective_role(entry.allowed_roles)
        if effective_role not in entry.allowed_roles:
            logger.warning(
                "Forbidden access attempt on %s by role %s (allowed: %s)",
                path,
                session.role.value,
                ", ".join(sorted(role.value for role in entry.allowed_roles)),
                extra={"path": path, "role": session.role.value},
            )
            return self._reject(entry, path, 403, MSG_FORBIDDEN, "forbidden", session)

        if session.is_genuine_tenant:
            owner_id = tenant_id_from_path(path)
            if owner_id is not None and owner_id != session.user_id:
                logger.warning(
                    "Tenant %s denied access to tenant resource %s",
                    session.user_id,
                    path,
                    extra={"path": path, "role": session.role.value},
                )
                return self._deny(path, 403, MSG_ACCESS_DENIED, "cross_tenant", session)

        if entry.is_api and method not in SAFE_METHODS:
            return self._guard_mutation(request, method, path, session)

        return self._allow(path, "authorized", session)

    def _guard_mutation(
        self, request: AccessRequest, method: str, path: str, session: Session
    ) -> AccessDecision:
        ip = client_ip(request.headers)
        limit = self.rate_limiter.hit(ip)
        if not limit.allowed:
            return self._deny(path, 429, MSG_TOO_MANY_REQUESTS, "rate_limited", session)

        headers = limit.headers()
        if self.csrf_guard.requires_validation(path):
            valid = self.csrf_guard.validate(
                request.cookies.get(CSRF_COOKIE), request.headers.get(CSRF_HEADER)
            )
            if not valid:
                logger.error(
                    "CSRF validation failed for %s %s from %s",
                    method,
                    path,
                    ip,
                    extra={"path": path, "method": method, "client_ip": ip},
                )
                return self._deny(
                    path, 403, MSG_INVALID_CSRF, "csrf_invalid", session, headers=headers
                )

        return self._allow(path, "authorized", session, headers=headers)

    # ── Decision builders ─────────────────────────────────────────────────

    @staticmethod
    def _allow(
        path: str,
        reason: str,
        session: Session = ANONYMOUS,
        headers: Optional[Dict[str, str]] = None,
    ) -> AccessDecision:
        return AccessDecision(
            outcome=Outcome.ALLOW,
            reason=reason,
            path=path,
            headers=headers or {},
            session=session,
        )

    @staticmethod
    def _deny(
        path: str,
        status_code: int,
        message: str,
        reason: str,
        session: Session = ANONYMOUS,
        headers: Optional[Dict[str, str]] = None,
    ) -> AccessDecision:
        return AccessDecision(
            outcome=Outcome.DENY,
            reason=reason,
            path=path,
            status_code=status_code,
            message=message,
            headers=headers or {},
            session=session,
        )

    def _reject(
        self,
        entry: RouteAccessEntry,
        path: str,
        status_code: int,
        message: str,
        reason: str,
        session: Session,
    ) -> AccessDecision:
        """API routes get a JSON error; page routes are sent to the login page."""
        if entry.is_api:
            return self._deny(path, status_code, message, reason, session)
        return AccessDecision(
            outcome=Outcome.REDIRECT,
            reason=reason,
            path=path,
            status_code=302,
            location=self.login_path,
            session=session,
        )
