"""
RentGate Backend - Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for route handlers and startup.
Why:   Targeted error handling with consistent `{success, message}` envelopes.
How:   Each exception carries a client-safe message and an optional context
       dict. Global handlers registered in main.py map them to HTTP statuses.
Who:   Raised by services, route handlers and the route table builder.

Exception Hierarchy:
    RentGateError (base)
    ├── ValidationError        → 400 Bad Request
    ├── AuthenticationError    → 401 Unauthorized
    ├── AuthorizationError     → 403 Forbidden
    ├── NotFoundError          → 404 Not Found
    ├── DatabaseError          → 500 Internal Server Error
    └── RouteTableError        → raised at startup, never reaches a client

The access-control middleware does NOT raise these for denied requests.
It runs outside FastAPI's exception handling, so it emits its responses
directly (see app/middleware/access_control.py).
"""

from typing import Any, Dict, Optional


class RentGateError(Exception):
    """
    Base exception for all RentGate application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RentGateError):
    """Client input failed validation (400)."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(RentGateError):
    """No usable session cookies were presented (401)."""

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(RentGateError):
    """
    The caller is authenticated but may not perform this action (403).

    Handlers raise this when re-checking a role the middleware has already
    enforced, e.g. when the app is mounted without the middleware in tests.
    """

    def __init__(
        self,
        message: str = "Forbidden",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(RentGateError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that into
    this exception so the route layer stays free of None checks.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(RentGateError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. Driver errors,
    SQL text and constraint names are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RouteTableError(RentGateError):
    """
    The compiled-in route access table is malformed or ambiguous.

    Raised while building a RouteTable, i.e. at import or app-factory time,
    so a bad table stops the process before it serves a single request.
    """

    def __init__(
        self,
        message: str = "Invalid route access table",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
