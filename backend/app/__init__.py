"""
RentGate Backend - Application Package Initializer
===================================================

Architecture Note:

    ┌─────────────────────────────────────┐
    │     Middleware (Access Control)     │  ← every request, before routes
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← CSRF token, impersonation, health
    ├─────────────────────────────────────┤
    │         Services (Policy Logic)     │  ← route table, session, CSRF, rate limit
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The policy services have no HTTP or database imports; they are exercised
    directly by unit tests and wrapped by the middleware for real traffic.
"""

__version__ = "1.0.0"
