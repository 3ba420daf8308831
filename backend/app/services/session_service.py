"""
RentGate Backend - Session Authenticator & Impersonation Resolver
==================================================================

What:  Turns request cookies into a Session: who is calling, with which role,
       and whether a property owner is currently viewing as one of their tenants.
Why:   Every authorization decision needs a single, typed view of the caller.
How:   Reads plain cookies set by the login and impersonation endpoints.
       Unknown or partial values produce an unauthenticated Session; nothing
       here raises for bad input.

Trust boundary:
    Cookies are NOT signed or verified here. The login flow of the wider
    application is trusted to set `userId` and `role`, and anyone able to
    write those cookies can claim any identity. Replacing this with signed
    session tokens would change the cookie contract (names and values) that
    the frontend relies on, so it is deliberately left as is.

Impersonation:
    A property owner who starts impersonating one of their tenants keeps their
    own `userId`/`role` cookies and additionally carries
        isImpersonating=true
        impersonatingTenantId=<tenant id>
    While that is active, routes that admit tenants treat the owner as a
    tenant. The flag is only honoured for property owners: it never lets a
    tenant or an admin change their effective role.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from app.services.route_policy import Role

logger = logging.getLogger(__name__)

USER_ID_COOKIE = "userId"
ROLE_COOKIE = "role"
IMPERSONATING_COOKIE = "isImpersonating"
IMPERSONATED_TENANT_COOKIE = "impersonatingTenantId"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role


@dataclass(frozen=True)
class ImpersonationState:
    """Raw impersonation cookies, before checking who presented them."""

    requested: bool = False
    tenant_id: Optional[str] = None


@dataclass(frozen=True)
class Session:
    """
    The caller as seen by the access policy.

    identity is None for an unauthenticated caller.
    """

    identity: Optional[Identity] = None
    impersonation: ImpersonationState = field(default_factory=ImpersonationState)

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def role(self) -> Optional[Role]:
        return self.identity.role if self.identity else None

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.user_id if self.identity else None

    @property
    def is_impersonating(self) -> bool:
        """Active only for property owners who carry the impersonation flag."""
        return (
            self.impersonation.requested
            and self.identity is not None
            and self.identity.role is Role.PROPERTY_OWNER
        )

    @property
    def is_genuine_tenant(self) -> bool:
        """A real tenant account, as opposed to an owner viewing as a tenant."""
        return self.role is Role.TENANT and not self.is_impersonating

    def effective_role(self, allowed_roles: Iterable[Role]) -> Optional[Role]:
        """
        Role used for the authorization check on one route.

        An impersonating owner counts as a tenant on routes that admit
        tenants; everywhere else (and for everyone else) the real role applies.
        """
        if self.identity is None:
            return None
        if self.is_impersonating and Role.TENANT in set(allowed_roles):
            return Role.TENANT
        return self.identity.role


ANONYMOUS = Session()


class SessionAuthenticator:
    """
    Reads identity and impersonation cookies.

    Stateless; one instance is shared by all requests.
    """

    def authenticate(self, cookies: Mapping[str, str]) -> Session:
        impersonation = self._read_impersonation(cookies)

        user_id = (cookies.get(USER_ID_COOKIE) or "").strip()
        raw_role = cookies.get(ROLE_COOKIE)
        role = Role.parse(raw_role)

        if not user_id or role is None:
            if raw_role and role is None:
                logger.debug("Ignoring unrecognized role cookie %r", raw_role)
            return Session(impersonation=impersonation)

        session = Session(identity=Identity(user_id=user_id, role=role), impersonation=impersonation)
        if impersonation.requested and not session.is_impersonating:
            logger.debug(
                "Ignoring impersonation flag for user %s with role %s", user_id, role.value
            )
        return session

    @staticmethod
    def _read_impersonation(cookies: Mapping[str, str]) -> ImpersonationState:
        requested = cookies.get(IMPERSONATING_COOKIE) == "true"
        tenant_id = cookies.get(IMPERSONATED_TENANT_COOKIE) or None
        return ImpersonationState(requested=requested, tenant_id=tenant_id)
