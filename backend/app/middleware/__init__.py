# Middleware package init
"""
RentGate Backend - Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [CORS] → [Request ID] → [Logging] → [Access Control] → [GZip] → Route

    Why this order:
    1. CORS outermost: preflights are answered before any policy runs, and
       401/403/429 envelopes still carry CORS headers the browser needs
    2. Request ID: every later log line can be correlated
    3. Logging: sees the final status of denied requests as well as allowed ones
    4. Access Control: authentication, authorization, tenant scoping,
       rate limiting and CSRF, before any handler executes
"""
