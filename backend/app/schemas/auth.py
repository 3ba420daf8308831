"""
RentGate Backend - Pydantic Request/Response Schemas
=====================================================

What:  API contracts for the endpoints this service owns (CSRF token
       issuance, impersonation) and the shared error envelope.
Why:   Validation of request bodies and stable camelCase JSON for the
       existing frontend, while Python code keeps snake_case names.
How:   Fields declare a camelCase alias; FastAPI serializes responses by alias.
"""

from typing import Optional

from pydantic import BaseModel, Field

# 24-character hexadecimal database identifier
OBJECT_ID_REGEX = r"^[0-9a-fA-F]{24}$"


# ══════════════════════════════════════════════════════════════════════════
# Envelopes
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  The single error shape every API consumer receives.
    Example:
        {"success": false, "message": "Invalid CSRF token"}
    """
    success: bool = Field(default=False, description="Always false for errors")
    message: str = Field(description="Human-readable error description")


# ══════════════════════════════════════════════════════════════════════════
# CSRF
# ══════════════════════════════════════════════════════════════════════════


class CsrfTokenResponse(BaseModel):
    """Returned by GET /api/csrf-token. The same value is set as a cookie."""
    success: bool = Field(default=True)
    csrf_token: str = Field(alias="csrfToken", description="Echo in the x-csrf-token header")

    model_config = {"populate_by_name": True}


# ══════════════════════════════════════════════════════════════════════════
# Impersonation
# ══════════════════════════════════════════════════════════════════════════


class ImpersonateRequest(BaseModel):
    """Body of POST /api/impersonate."""
    tenant_id: str = Field(
        alias="tenantId",
        pattern=OBJECT_ID_REGEX,
        description="Tenant to view as; must belong to the calling owner",
    )

    model_config = {"populate_by_name": True}


class ImpersonationResponse(BaseModel):
    success: bool = Field(default=True)
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    redirect: str = Field(description="Dashboard the frontend should navigate to")

    model_config = {"populate_by_name": True}
