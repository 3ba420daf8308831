"""
RentGate Backend - Fixed Window Rate Limiter
=============================================

What:  Per-IP request counter guarding non-GET API calls against abuse.
Why:   A soft deterrent against scripted form submission and brute force.
       It is not a billing-grade quota.
How:   Each client IP owns one record (count, window_start). A request either
       starts a fresh window (count = 1) or increments the current one; once
       count exceeds the limit the request is rejected until the window ends.

Algorithm: Fixed Window Counter
    Window = 15 minutes, limit = 100 (see Settings.rate_limit_*).
    Expired records are swept on every call, so memory stays bounded by the
    number of clients active within one window, with no background timer.

Client attribution:
    x-forwarded-for (first hop) → x-real-ip → "unknown".
    All unattributable clients share the "unknown" bucket.

Scaling limitation:
    State lives in this process only. With N workers or instances, each one
    enforces its own budget, so a client can make up to N × limit requests.
    Sharing the budget requires an external store (e.g. Redis INCR + EXPIRE).

Concurrency:
    Read-modify-write without locks. Under a single asyncio event loop
    hit() never yields, so each call runs to completion before the next.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitRecord:
    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int

    def headers(self) -> Dict[str, str]:
        """Response headers advertised on requests that were let through."""
        return {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Limit": str(self.limit),
        }


def client_ip(headers: Mapping[str, str]) -> str:
    """Best-effort client IP from proxy headers."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = (headers.get("x-real-ip") or "").strip()
    return real_ip or UNKNOWN_CLIENT


class FixedWindowRateLimiter:
    """
    In-memory fixed window limiter.

    One instance is created by the application factory and owned by the
    access policy; tests create their own and pass a fake clock.
    """

    def __init__(
        self,
        limit: int = 100,
        window_seconds: float = 900,
        clock: Optional[Callable[[], float]] = None,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._records: Dict[str, RateLimitRecord] = {}

    def hit(self, key: str) -> RateLimitResult:
        """Count one request for `key` and report whether it may proceed."""
        now = self._clock()
        self._sweep(now)
        key = key or UNKNOWN_CLIENT

        record = self._records.get(key)
        if record is None or self._expired(record, now):
            self._records[key] = RateLimitRecord(count=1, window_start=now)
            return RateLimitResult(allowed=True, remaining=self.limit - 1, limit=self.limit)

        record.count += 1
        if record.count > self.limit:
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ss window",
                key,
                record.count,
                self.window_seconds,
            )
            return RateLimitResult(allowed=False, remaining=0, limit=self.limit)

        return RateLimitResult(
            allowed=True, remaining=self.limit - record.count, limit=self.limit
        )

    def _expired(self, record: RateLimitRecord, now: float) -> bool:
        return now - record.window_start >= self.window_seconds

    def _sweep(self, now: float) -> None:
        stale = [key for key, record in self._records.items() if self._expired(record, now)]
        for key in stale:
            del self._records[key]
        if stale:
            logger.debug("Swept %d expired rate limit records", len(stale))

    def reset(self) -> None:
        """Drop all records (application shutdown, tests)."""
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records
