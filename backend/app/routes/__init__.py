# Routes package init
"""
RentGate Backend - API Routes Package
======================================

Route Inventory:
    - csrf.py:           GET  /api/csrf-token
    - impersonation.py:  POST /api/impersonate
                         POST /api/revert-impersonation
    - health.py:         GET  /health

Business endpoints (payments, invoices, maintenance, reports) are served
by other handlers behind the same access-control middleware; this service
only owns the endpoints that produce the state the middleware reads.
"""
