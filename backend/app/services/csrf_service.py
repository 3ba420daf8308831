"""
RentGate Backend - CSRF Guard
==============================

What:  Issues and validates double-submit CSRF tokens.
Why:   Session cookies are sent automatically by the browser, so a forged
       cross-site form could otherwise perform mutations as the victim.
How:   GET /api/csrf-token mints a random token, returns it in the body and
       sets it as an httpOnly cookie. Mutating calls must echo it in the
       `x-csrf-token` header; the request is valid only if header and cookie
       are both present and identical.

Stateless:
    No server-side token registry. Any process can validate any token, which
    keeps the guard usable behind multiple workers. The cookie's max-age is
    the token's lifetime.

Lifecycle per mutating call:
    NO_TOKEN_ISSUED → TOKEN_ISSUED → VALID | INVALID
"""

import hmac
import secrets
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from app.services.route_policy import is_under_any

CSRF_COOKIE = "csrf-token"
CSRF_HEADER = "x-csrf-token"


class CsrfGuard:
    """
    Token issuance and double-submit validation.

    exempt_routes: route prefixes (segment-aligned) that skip validation,
    either because their handlers validate the token themselves or because
    they are explicitly safe to call without one.
    """

    def __init__(
        self,
        *,
        max_age: int = 3600,
        secure: bool = False,
        exempt_routes: Iterable[str] = (),
        token_bytes: int = 32,
    ):
        self.max_age = max_age
        self.secure = secure
        self.exempt_routes: Tuple[str, ...] = tuple(exempt_routes)
        self._token_bytes = token_bytes

    def issue_token(self) -> str:
        return secrets.token_urlsafe(self._token_bytes)

    def cookie_options(self) -> Dict[str, Any]:
        """Keyword arguments for Starlette's Response.set_cookie()."""
        return {
            "key": CSRF_COOKIE,
            "max_age": self.max_age,
            "path": "/",
            "httponly": True,
            "secure": self.secure,
            "samesite": "strict",
        }

    def requires_validation(self, path: str) -> bool:
        return not is_under_any(path, self.exempt_routes)

    @staticmethod
    def validate(cookie_token: Optional[str], header_token: Optional[str]) -> bool:
        """True iff both tokens are present and byte-equal (constant time)."""
        if not cookie_token or not header_token:
            return False
        return hmac.compare_digest(cookie_token.encode("utf-8"), header_token.encode("utf-8"))

    def validate_request(self, cookies: Mapping[str, str], headers: Mapping[str, str]) -> bool:
        """Convenience for handlers that check the token themselves."""
        return self.validate(cookies.get(CSRF_COOKIE), headers.get(CSRF_HEADER))
