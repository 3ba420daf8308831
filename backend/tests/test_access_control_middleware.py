"""
RentGate Backend - Access Control Middleware Tests
===================================================

What:  End-to-end checks through the real middleware stack.
How:   HTTPX AsyncClient over ASGITransport; a catch-all route stands in for
       the protected business endpoints (see conftest.add_downstream_route).

What we test:
    ✅ Response envelopes and redirects as the browser sees them
    ✅ CSRF token round trip
    ✅ Rate limit headers and the 429 on the 101st mutating call
    ✅ Unexpected policy failures become a generic 500
"""

import logging
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.main import create_app
from app.services.rate_limiter import FixedWindowRateLimiter
from app.services.route_policy import Role, RouteTable, route

from conftest import (
    ADMIN_ID,
    OTHER_TENANT_ID,
    OWNER_ID,
    TENANT_ID,
    FakeClock,
    add_downstream_route,
    cookie_header,
    session_headers,
)


class TestShortCircuits:

    @pytest.mark.asyncio
    async def test_static_asset_skips_policy(self, app, client):
        app.state.access_policy.authenticator.authenticate = None  # not callable
        response = await client.get("/_next/static/chunks/main.js")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_public_properties(self, client):
        response = await client.get("/api/public-properties")
        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_legacy_property_url(self, client):
        response = await client.get("/properties/abc123?ref=email")
        assert response.status_code == 301
        assert response.headers["location"] == "http://test/property-listings/abc123"

    @pytest.mark.asyncio
    async def test_unlisted_path_is_allowed(self, client):
        response = await client.post("/api/reports")
        assert response.status_code == 200


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_api_returns_401_envelope(self, client):
        response = await client.get("/api/payments")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_page_redirects_to_login(self, client):
        response = await client.get("/tenant-dashboard?tab=bills")
        assert response.status_code == 302
        assert response.headers["location"] == "http://test/login"

    @pytest.mark.asyncio
    async def test_public_page(self, client):
        response = await client.get("/property-listings")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_downstream_sees_session(self, client):
        response = await client.get("/api/users", headers=session_headers(ADMIN_ID, "admin"))
        assert response.status_code == 200
        assert response.json()["role"] == "admin"


class TestAuthorization:

    @pytest.mark.asyncio
    async def test_wrong_role_on_api(self, client):
        response = await client.get("/api/users", headers=session_headers(TENANT_ID, "tenant"))
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Forbidden"}

    @pytest.mark.asyncio
    async def test_wrong_role_on_page(self, client):
        response = await client.get(
            "/property-owner-dashboard", headers=session_headers(TENANT_ID, "tenant")
        )
        assert response.status_code == 302
        assert response.headers["location"] == "http://test/login"

    @pytest.mark.asyncio
    async def test_cross_tenant_access(self, client):
        response = await client.get(
            f"/api/tenants/{OTHER_TENANT_ID}", headers=session_headers(TENANT_ID, "tenant")
        )
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Access denied"}

    @pytest.mark.asyncio
    async def test_own_tenant_record(self, client):
        response = await client.get(
            f"/api/tenants/{TENANT_ID}", headers=session_headers(TENANT_ID, "tenant")
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_impersonation_on_tenant_only_route(self, app_settings):
        table = RouteTable([route("/api/tenant-only", Role.TENANT)])
        application = create_app(
            app_settings,
            rate_limiter=FixedWindowRateLimiter(clock=FakeClock()),
            route_table=table,
        )
        add_downstream_route(application)

        async with AsyncClient(
            transport=ASGITransport(app=application), base_url="http://test"
        ) as http_client:
            plain = await http_client.get(
                "/api/tenant-only", headers=session_headers(OWNER_ID, "propertyOwner")
            )
            impersonating = await http_client.get(
                "/api/tenant-only",
                headers=session_headers(OWNER_ID, "propertyOwner", impersonating=True),
            )

        assert plain.status_code == 403
        assert impersonating.status_code == 200
        # Downstream still sees the real role
        assert impersonating.json()["role"] == "propertyOwner"


class TestCsrfAndRateLimit:

    @pytest.mark.asyncio
    async def test_csrf_token_round_trip(self, client):
        issued = await client.get("/api/csrf-token")
        assert issued.status_code == 200
        token = issued.json()["csrfToken"]
        assert issued.json()["success"] is True
        assert issued.headers["cache-control"] == "no-store"

        set_cookie = issued.headers["set-cookie"].lower()
        assert set_cookie.startswith(f"csrf-token={token}".lower())
        assert "httponly" in set_cookie
        assert "samesite=strict" in set_cookie
        assert "max-age=3600" in set_cookie
        assert "path=/" in set_cookie
        assert "secure" not in set_cookie

        headers = cookie_header(userId=TENANT_ID, role="tenant", **{"csrf-token": token})
        headers["X-CSRF-Token"] = token
        response = await client.post("/api/payments", headers=headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_missing_csrf_header(self, client):
        headers = cookie_header(userId=TENANT_ID, role="tenant", **{"csrf-token": "abc"})
        response = await client.post("/api/payments", headers=headers)
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Invalid CSRF token"}
        assert response.headers["x-ratelimit-limit"] == "100"

    @pytest.mark.asyncio
    async def test_admin_api_skips_csrf(self, client):
        response = await client.delete("/api/users/42", headers=session_headers(ADMIN_ID, "admin"))
        assert response.status_code == 200
        assert response.headers["x-ratelimit-remaining"] == "99"

    @pytest.mark.asyncio
    async def test_rate_limit_headers_and_429(self, client, clock):
        headers = session_headers(TENANT_ID, "tenant", csrf=True)

        for expected_remaining in range(99, -1, -1):
            response = await client.post("/api/payments", headers=headers)
            assert response.status_code == 200
            assert response.headers["x-ratelimit-remaining"] == str(expected_remaining)
            assert response.headers["x-ratelimit-limit"] == "100"

        response = await client.post("/api/payments", headers=headers)
        assert response.status_code == 429
        assert response.json() == {
            "success": False,
            "message": "Too many requests. Please try again later.",
        }
        assert "x-ratelimit-remaining" not in response.headers

        # Reads are never limited
        response = await client.get("/api/payments", headers=headers)
        assert response.status_code == 200

        clock.advance(900)
        response = await client.post("/api/payments", headers=headers)
        assert response.status_code == 200
        assert response.headers["x-ratelimit-remaining"] == "99"


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_policy_error_returns_500(self, app, client):
        with patch.object(
            app.state.access_policy, "evaluate", side_effect=RuntimeError("boom")
        ):
            response = await client.get("/api/payments")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error"}

    @pytest.mark.asyncio
    async def test_request_id_header(self, client):
        response = await client.get("/property-listings", headers={"X-Request-ID": "abc-123"})
        assert response.headers["x-request-id"] == "abc-123"

    @pytest.mark.asyncio
    async def test_production_uses_secure_csrf_cookie(self):
        settings = Settings(environment="production", database_url="sqlite+aiosqlite://")
        application = create_app(settings)

        async with AsyncClient(
            transport=ASGITransport(app=application), base_url="https://test"
        ) as http_client:
            response = await http_client.get("/api/csrf-token")

        assert response.status_code == 200
        set_cookie = response.headers["set-cookie"].lower()
        assert set_cookie.startswith("csrf-token=")
        assert "; secure" in set_cookie
        assert "httponly" in set_cookie


class TestDecisionLogging:

    @pytest.mark.asyncio
    async def test_unmatched_route_logged_once(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="app"):
            response = await client.post("/api/reports")

        assert response.status_code == 200
        lines = [
            record for record in caplog.records
            if record.name.startswith("app.") and "/api/reports" in record.getMessage()
        ]
        assert len(lines) == 1
        assert lines[0].getMessage().startswith("No access policy found for POST /api/reports")
        assert lines[0].levelno == logging.INFO

    @pytest.mark.asyncio
    async def test_denial_logged_as_warning(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="app"):
            await client.get("/api/payments")

        decisions = [r for r in caplog.records if r.name == "app.middleware.access_control"]
        assert len(decisions) == 1
        assert decisions[0].levelno == logging.WARNING
        assert decisions[0].reason == "unauthenticated"
