"""Per-submitter throttling for the public form, and who-is-submitting helpers."""

import ipaddress
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from threading import Lock
from typing import Optional

from fastapi import Request

from app.core.config import get_settings

SUBMISSION_WINDOW_SECONDS = 60


class SlidingWindowRateLimiter:
    """Trailing-window hit counter keyed by submitter. Keys with no recent hits are swept out."""

    def __init__(self, *, max_buckets: int = 50_000, prune_interval_seconds: int = 60) -> None:
        self._hits: defaultdict[str, deque[float]] = defaultdict(deque)
        self._lock = Lock()
        self._max_keys = max_buckets
        self._sweep_every = max(1, int(prune_interval_seconds))
        self._swept_at = 0.0

    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        """Record a hit for ``key`` unless it already has ``limit`` hits in the window."""
        if limit <= 0 or window_seconds <= 0:
            return True, 0
        now = time.monotonic()
        horizon = now - window_seconds
        with self._lock:
            if self._sweep_due(now):
                self._sweep(horizon)
                self._swept_at = now
            hits = self._live_hits(key, horizon)
            allowed = len(hits) < limit
            if allowed:
                hits.append(now)
            return allowed, len(hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._swept_at = 0.0

    def _sweep_due(self, now: float) -> bool:
        return now - self._swept_at >= self._sweep_every or len(self._hits) > self._max_keys

    def _live_hits(self, key: str, horizon: float) -> deque[float]:
        hits = self._hits[key]
        while hits and hits[0] <= horizon:
            hits.popleft()
        return hits

    def _sweep(self, horizon: float) -> None:
        idle = [key for key in self._hits if not self._live_hits(key, horizon)]
        for key in idle:
            del self._hits[key]


rate_limiter = SlidingWindowRateLimiter()


@dataclass(frozen=True)
class Submitter:
    ip_address: Optional[str]
    user_agent: Optional[str]

    @property
    def rate_limit_key(self) -> str:
        return f"submit:ip:{self.ip_address or 'unknown'}"


def _is_trusted_proxy(ip: Optional[str], cidrs: list[str]) -> bool:
    if not ip or not cidrs:
        return False
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return ip in cidrs
    for cidr in cidrs:
        try:
            if address in ipaddress.ip_network(cidr, strict=False):
                return True
        except ValueError:
            continue
    return False


def get_client_ip(request: Request, trusted_proxy_cidrs: Optional[list[str]] = None) -> Optional[str]:
    """Submitter IP. Proxy headers count only when the direct peer is a trusted proxy."""
    peer = request.client.host if request.client else None
    cidrs = get_settings().trusted_proxy_cidrs if trusted_proxy_cidrs is None else trusted_proxy_cidrs
    if not _is_trusted_proxy(peer, cidrs):
        return peer

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    # Rightmost entry was appended by our own proxy.
    chain = [hop.strip() for hop in (request.headers.get("x-forwarded-for") or "").split(",") if hop.strip()]
    return chain[-1] if chain else peer


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent") if request else None


def submitter_from_request(request: Request) -> Submitter:
    return Submitter(ip_address=get_client_ip(request), user_agent=get_user_agent(request))


def submission_allowed(submitter: Submitter) -> bool:
    settings = get_settings()
    if not settings.rate_limit_submissions_enabled:
        return True
    allowed, _ = rate_limiter.allow(
        submitter.rate_limit_key,
        settings.rate_limit_submissions_per_min,
        SUBMISSION_WINDOW_SECONDS,
    )
    return allowed
