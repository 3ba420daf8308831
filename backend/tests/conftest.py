"""
RentGate Backend - Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own application, rate limiter and fake clock, so
       rate limit state never leaks between tests.

Fixture Hierarchy (all function-scoped):
    ├── clock:            controllable time source for the rate limiter
    ├── rate_limiter:     FixedWindowRateLimiter(100 / 900s) on `clock`
    ├── app_settings:     Settings for the test environment
    ├── app:              create_app(...) plus a catch-all downstream route
    ├── client:           HTTPX AsyncClient bound to `app`
    └── mock_db_session:  AsyncMock standing in for AsyncSession
"""

import os

# Must be set before anything imports app.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_rentgate.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Dict
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.main import create_app
from app.services.rate_limiter import FixedWindowRateLimiter

OWNER_ID = "64b7f0c2a1b2c3d4e5f60718"
TENANT_ID = "64b7f0c2a1b2c3d4e5f6aaaa"
OTHER_TENANT_ID = "64b7f0c2a1b2c3d4e5f6bbbb"
ADMIN_ID = "64b7f0c2a1b2c3d4e5f6cccc"
CSRF_TOKEN = "test-csrf-token-value"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 10_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def cookie_header(**cookies: str) -> Dict[str, str]:
    """
    Build a Cookie request header.

    Why a header and not httpx's cookies=: per-request cookies are deprecated
    in httpx, and an explicit header keeps every request self-contained.
    """
    if not cookies:
        return {}
    return {"Cookie": "; ".join(f"{name}={value}" for name, value in cookies.items())}


def session_headers(
    user_id: str,
    role: str,
    *,
    csrf: bool = False,
    impersonating: bool = False,
    ip: str = "203.0.113.7",
) -> Dict[str, str]:
    """Headers for an authenticated browser request, optionally with CSRF."""
    cookies = {"userId": user_id, "role": role}
    if impersonating:
        cookies["isImpersonating"] = "true"
        cookies["impersonatingTenantId"] = TENANT_ID
    headers = {"X-Forwarded-For": ip}
    if csrf:
        cookies["csrf-token"] = CSRF_TOKEN
        headers["X-CSRF-Token"] = CSRF_TOKEN
    headers.update(cookie_header(**cookies))
    return headers


def add_downstream_route(application: FastAPI) -> None:
    """
    Catch-all handler standing in for the business endpoints the middleware
    protects (payments, invoices, pages...). Echoes who it saw.
    """

    async def downstream(request: Request) -> JSONResponse:
        session = getattr(request.state, "session", None)
        return JSONResponse(
            {
                "success": True,
                "path": request.url.path,
                "method": request.method,
                "role": session.role.value if session and session.role else None,
            }
        )

    application.add_api_route(
        "/{full_path:path}",
        downstream,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(limit=100, window_seconds=900, clock=clock)


@pytest.fixture
def app_settings() -> Settings:
    return Settings(environment="test", log_level="WARNING")


@pytest.fixture
def app(app_settings, rate_limiter) -> FastAPI:
    application = create_app(app_settings, rate_limiter=rate_limiter)
    add_downstream_route(application)
    return application


@pytest_asyncio.fixture
async def client(app):
    """HTTPX AsyncClient routed straight into the ASGI app (no server)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def mock_db_session():
    """A MagicMock that simulates AsyncSession behavior."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session
