"""
RentGate Backend - Route Access Policy
=======================================

What:  The compiled-in route access table and the classifier that maps a
       request path to the entry that governs it.
Why:   Every authorization decision starts with "which rule applies here?".
       Keeping the table in code means it is reviewed like code and cannot be
       loosened by an environment variable.
How:   RouteTable validates its entries when constructed and answers match()
       with a deterministic precedence, independent of declaration order:

           1. exact key            /api/invoices/generate
           2. parameterized key    /api/tenants/:tenantId   (24-hex segment)
           3. longest prefix       /api/tenants  for  /api/tenants/x/y

Fail-open:
    A path that matches no entry is ALLOWED. Any new sensitive route must be
    added to DEFAULT_ROUTE_TABLE or it is unprotected. AccessControlMiddleware logs
    every unmatched request so coverage gaps show up in the logs.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple
from urllib.parse import quote

from app.exceptions import RouteTableError

# Database identifiers in this system are 24-character hexadecimal strings
OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

_MULTI_SLASH = re.compile(r"/{2,}")
_PARAM_SEGMENT = re.compile(r"^:[A-Za-z_][A-Za-z0-9_]*$")


class Role(str, Enum):
    """Closed set of roles. The cookie values are the enum values."""

    ADMIN = "admin"
    PROPERTY_OWNER = "propertyOwner"
    TENANT = "tenant"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """
        Parse a raw cookie value into a Role.

        Returns None for a missing or unrecognized value. None is the
        "unauthenticated" variant: unknown strings never travel past here.
        """
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


def normalize_path(path: str) -> str:
    """
    Canonical form used for every policy lookup.

    Strips query string and fragment, collapses repeated slashes and removes a
    trailing slash, so that '//api/users/' cannot sidestep the '/api/users' rule.
    """
    path = path.split("?", 1)[0].split("#", 1)[0]
    path = _MULTI_SLASH.sub("/", path)
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return path


def is_under(path: str, prefix: str) -> bool:
    """True if `path` is `prefix` itself or a segment-aligned descendant of it."""
    return path == prefix or path.startswith(prefix + "/")


def is_under_any(path: str, prefixes: Iterable[str]) -> bool:
    return any(is_under(path, prefix) for prefix in prefixes)


@dataclass(frozen=True)
class RouteAccessEntry:
    """
    One row of the access table.

    key:            '/api/invoices' or '/api/tenants/:tenantId'
    allowed_roles:  roles that may call the route; empty means public
    is_api:         API routes answer with JSON errors, page routes redirect
    """

    key: str
    allowed_roles: FrozenSet[Role]
    is_api: bool

    @property
    def is_public(self) -> bool:
        return not self.allowed_roles

    @property
    def segments(self) -> Tuple[str, ...]:
        return _split(self.key)

    @property
    def is_parameterized(self) -> bool:
        return any(segment.startswith(":") for segment in self.segments)


@dataclass(frozen=True)
class RouteMatch:
    """The entry that governs a path, plus any parameters it captured."""

    entry: RouteAccessEntry
    params: Dict[str, str] = field(default_factory=dict)


def route(key: str, *roles: Role, api: bool = True) -> RouteAccessEntry:
    """Shorthand used to declare the table below."""
    return RouteAccessEntry(key=key, allowed_roles=frozenset(roles), is_api=api)


def _split(path: str) -> Tuple[str, ...]:
    stripped = path.strip("/")
    return tuple(stripped.split("/")) if stripped else ()


def _match_segments(pattern: Sequence[str], segments: Sequence[str]) -> Optional[Dict[str, str]]:
    if len(pattern) != len(segments):
        return None
    params: Dict[str, str] = {}
    for expected, actual in zip(pattern, segments):
        if expected.startswith(":"):
            if not OBJECT_ID_PATTERN.match(actual):
                return None
            params[expected[1:]] = actual
        elif expected != actual:
            return None
    return params


def _segments_overlap(x: str, y: str) -> bool:
    x_param, y_param = x.startswith(":"), y.startswith(":")
    if x_param and y_param:
        return True
    if x_param:
        return bool(OBJECT_ID_PATTERN.match(y))
    if y_param:
        return bool(OBJECT_ID_PATTERN.match(x))
    return x == y


def _patterns_overlap(a: Sequence[str], b: Sequence[str]) -> bool:
    if len(a) != len(b):
        return False
    return all(_segments_overlap(x, y) for x, y in zip(a, b))


class RouteTable:
    """
    Immutable, validated route access table.

    Construction raises RouteTableError for malformed keys, duplicates, and
    entries whose precedence would be ambiguous:
        - two parameterized keys that can match the same path
        - a literal key that a parameterized key would also match
    Overlapping prefixes are not an error: the longest one always wins.
    """

    def __init__(self, entries: Iterable[RouteAccessEntry]):
        self._entries: List[RouteAccessEntry] = []
        self._exact: Dict[str, RouteAccessEntry] = {}
        self._patterns: List[RouteAccessEntry] = []

        for entry in entries:
            self._validate_key(entry.key)
            if any(existing.key == entry.key for existing in self._entries):
                raise RouteTableError(
                    f"Duplicate route key '{entry.key}'", context={"key": entry.key}
                )
            self._entries.append(entry)
            if entry.is_parameterized:
                self._patterns.append(entry)
            else:
                self._exact[entry.key] = entry

        self._check_ambiguities()

        # Longest key first: the first prefix hit is the most specific one
        self._prefixes = sorted(self._exact.values(), key=lambda e: len(e.key), reverse=True)

    @staticmethod
    def _validate_key(key: str) -> None:
        problems = []
        if not key.startswith("/"):
            problems.append("must start with '/'")
        if key != "/" and key.endswith("/"):
            problems.append("must not end with '/'")
        if "//" in key:
            problems.append("must not contain empty segments")
        if "?" in key or "#" in key:
            problems.append("must not contain a query string or fragment")
        for segment in _split(key):
            if segment.startswith(":") and not _PARAM_SEGMENT.match(segment):
                problems.append(f"has an invalid parameter segment '{segment}'")
        if problems:
            raise RouteTableError(
                f"Route key '{key}' " + "; ".join(problems), context={"key": key}
            )

    def _check_ambiguities(self) -> None:
        for i, first in enumerate(self._patterns):
            for second in self._patterns[i + 1:]:
                if _patterns_overlap(first.segments, second.segments):
                    raise RouteTableError(
                        f"Parameterized routes '{first.key}' and '{second.key}' overlap",
                        context={"keys": [first.key, second.key]},
                    )
        for literal in self._exact.values():
            for pattern in self._patterns:
                if _match_segments(pattern.segments, literal.segments) is not None:
                    raise RouteTableError(
                        f"Route '{literal.key}' is also matched by '{pattern.key}'",
                        context={"keys": [literal.key, pattern.key]},
                    )

    def match(self, path: str) -> Optional[RouteMatch]:
        """
        Return the entry governing `path` (already normalized), or None.

        None means no rule applies and the caller should allow the request.
        """
        entry = self._exact.get(path)
        if entry is not None:
            return RouteMatch(entry=entry)

        segments = _split(path)
        for pattern in self._patterns:
            params = _match_segments(pattern.segments, segments)
            if params is not None:
                return RouteMatch(entry=pattern, params=params)

        for entry in self._prefixes:
            if entry.key != "/" and path.startswith(entry.key + "/"):
                return RouteMatch(entry=entry)
        return None

    def __iter__(self) -> Iterator[RouteAccessEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


# ══════════════════════════════════════════════════════════════════════════
# Static policy configuration
# ══════════════════════════════════════════════════════════════════════════

ADMIN = Role.ADMIN
OWNER = Role.PROPERTY_OWNER
TENANT = Role.TENANT

DEFAULT_ROUTE_TABLE = RouteTable([
    # ── Admin API ─────────────────────────────────────────────────────────
    route("/api/users", ADMIN),
    route("/api/invoices/generate", ADMIN),
    route("/api/admins", ADMIN),
    route("/api/admin/properties", ADMIN),
    route("/api/admin/property-owners", ADMIN),

    # ── Shared API ────────────────────────────────────────────────────────
    route("/api/payments", ADMIN, OWNER, TENANT),
    route("/api/tenant/payments", TENANT, OWNER),
    route("/api/invoices", ADMIN, OWNER),
    route("/api/properties", OWNER, TENANT),
    route("/api/list-properties", OWNER),
    route("/api/tenants", OWNER, TENANT),
    # Tenants may read their own record; the ownership check in
    # AccessPolicy keeps them off everybody else's.
    route("/api/tenants/:tenantId", OWNER, TENANT),
    route("/api/tenant/profile", TENANT, OWNER),
    route("/api/tenants/check-dues", OWNER, TENANT),
    route("/api/tenants/maintenance", TENANT, OWNER),

    # ── Owner-only API ────────────────────────────────────────────────────
    route("/api/update-wallet", OWNER),
    route("/api/impersonate", OWNER),
    route("/api/revert-impersonation", OWNER, TENANT),
    route("/api/ownerstats", OWNER),
    route("/api/ownercharts", OWNER),

    # ── Pages ─────────────────────────────────────────────────────────────
    route("/properties", OWNER, TENANT, api=False),
    route("/tenants", OWNER, api=False),
    route("/property-owner-dashboard", OWNER, api=False),
    route("/tenant-dashboard", TENANT, OWNER, api=False),
    route("/property-listings", api=False),
])

# Never reach the access policy at all
STATIC_PREFIXES: Tuple[str, ...] = ("/_next/", "/static/")
STATIC_PATHS: FrozenSet[str] = frozenset({"/favicon.ico"})

# (method, path) pairs that skip authentication entirely
PUBLIC_ENDPOINTS: FrozenSet[Tuple[str, str]] = frozenset({("GET", "/api/public-properties")})

# Old property detail URLs, permanently moved
LEGACY_PROPERTY_DETAIL = re.compile(r"^/properties/([^/]+)$")
LEGACY_PROPERTY_TARGET = "/property-listings/{}"

# Handlers under these routes validate the CSRF token themselves
CSRF_SELF_HANDLED_ROUTES: Tuple[str, ...] = (
    "/api/tenants/maintenance",
    "/api/tenant/payments",
    "/api/tenant/change-password",
    "/api/tenant/profile",
)

# Called from the impersonated tenant view, which holds no owner token
CSRF_EXEMPT_ROUTES: Tuple[str, ...] = ("/api/revert-impersonation",)

# Admin API calls are rate limited but skip the CSRF check
ADMIN_API_PATHS: Tuple[str, ...] = (
    "/api/admin/property-owners",
    "/api/admin/properties",
    "/api/admins",
    "/api/users",
)

# Per-tenant resources: /api/tenants/{tenantId}[/...]
TENANT_SCOPED_PREFIX = "/api/tenants"
TENANT_SELF_SERVICE_PATHS: Tuple[str, ...] = (
    "/api/tenants/maintenance",
    "/api/tenants/profile",
    "/api/tenants/check-dues",
)


def is_static_asset(path: str) -> bool:
    return path in STATIC_PATHS or path.startswith(STATIC_PREFIXES)


def is_public_endpoint(method: str, path: str) -> bool:
    return (method.upper(), path) in PUBLIC_ENDPOINTS


def legacy_redirect_target(path: str) -> Optional[str]:
    """'/properties/abc' -> '/property-listings/abc'; None for anything else."""
    match = LEGACY_PROPERTY_DETAIL.match(path)
    if match is None:
        return None
    return LEGACY_PROPERTY_TARGET.format(quote(match.group(1), safe=""))


def tenant_id_from_path(path: str) -> Optional[str]:
    """
    Tenant id embedded in a tenant-scoped path, or None when the path is not
    tenant-scoped or is one of the self-service sub-paths.

    The id is the third path segment: /api/tenants/{id}/...
    """
    if not path.startswith(TENANT_SCOPED_PREFIX + "/"):
        return None
    if is_under_any(path, TENANT_SELF_SERVICE_PATHS):
        return None
    segments = _split(path)
    return segments[2] if len(segments) >= 3 else None
