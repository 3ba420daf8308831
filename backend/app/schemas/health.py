"""
RentGate Backend - Health Check Schema
=======================================
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health for monitoring and load balancer health checks.

    rate_limit_buckets is the number of client IPs currently tracked by this
    process's rate limiter. A steadily growing value means many distinct
    clients are sending non-GET API requests.
    """
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    rate_limit_buckets: int = Field(description="Client IPs tracked in the current window")
    uptime_seconds: float = Field(description="Seconds since service started")
