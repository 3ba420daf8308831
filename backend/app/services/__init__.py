# Services package init
"""
RentGate Backend - Services Layer
==================================

Service Inventory:
    - route_policy:    Role enum, RouteTable classifier, static route config
    - session_service: Cookie authentication and impersonation resolution
    - csrf_service:    Double-submit CSRF token issuance and validation
    - rate_limiter:    Fixed window per-IP limiter
    - access_policy:   Composes the above into one AccessDecision per request
    - tenant_service:  Tenant ownership lookup for impersonation

Only tenant_service touches the database. The policy services are plain
Python and are unit-tested without HTTP.
"""
