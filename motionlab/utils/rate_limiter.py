"""Per-client rate limiting for the proxy endpoints."""

import time
import logging
from typing import Dict, Optional, Tuple
from dataclasses import dataclass, field
from threading import Lock

from motionlab.core.errors import RateLimited

logger = logging.getLogger(__name__)


@dataclass
class ClientWindow:
    """Request counter for one client in the current window."""
    request_count: int = 0
    window_start: float = field(default_factory=time.time)
    last_request: float = field(default_factory=time.time)


class RateLimiter:
    """Fixed-window rate limiter keyed by client id (usually the client IP).

    The proxy relays a server-wide API key when one is configured, so every
    caller spends the same quota; this keeps a single browser from draining it.

    Example:
        limiter = RateLimiter(max_requests=60, window_seconds=60)
        limiter.enforce("203.0.113.7")  # raises RateLimited when exhausted
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: int = 60,
        cleanup_interval: int = 300
    ):
        """Initialize the rate limiter.

        Args:
            max_requests: Requests allowed per client per window
            window_seconds: Window length in seconds
            cleanup_interval: Seconds between purges of idle clients
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval

        self._clients: Dict[str, ClientWindow] = {}
        self._lock = Lock()
        self._last_cleanup = time.time()

        logger.info(f"RateLimiter initialized: {max_requests} requests per {window_seconds}s")

    def is_allowed(self, client_id: str) -> Tuple[bool, Optional[int]]:
        """Record a request and report whether it may proceed.

        Args:
            client_id: Client identifier

        Returns:
            (allowed, retry_after_seconds); retry_after is None when allowed
        """
        with self._lock:
            now = time.time()

            if now - self._last_cleanup > self.cleanup_interval:
                self._purge_idle(now)

            window = self._clients.get(client_id)
            if window is None or now - window.window_start >= self.window_seconds:
                self._clients[client_id] = ClientWindow(
                    request_count=1, window_start=now, last_request=now
                )
                return True, None

            if window.request_count >= self.max_requests:
                retry_after = int(self.window_seconds - (now - window.window_start)) + 1
                logger.warning(
                    f"Rate limit exceeded for {client_id}: "
                    f"{window.request_count}/{self.max_requests}, retry after {retry_after}s"
                )
                return False, retry_after

            window.request_count += 1
            window.last_request = now
            return True, None

    def enforce(self, client_id: str) -> None:
        """Like is_allowed, but raise when the client is over its limit.

        Raises:
            RateLimited: With ``retry_after`` in the payload
        """
        allowed, retry_after = self.is_allowed(client_id)
        if not allowed:
            raise RateLimited(
                f"Too many requests. Retry after {retry_after} seconds.",
                retry_after=retry_after,
            )

    def _purge_idle(self, now: float) -> None:
        cutoff = now - self.window_seconds * 2
        idle = [cid for cid, window in self._clients.items() if window.last_request < cutoff]
        for client_id in idle:
            del self._clients[client_id]
        if idle:
            logger.info(f"Purged {len(idle)} idle rate limit entries")
        self._last_cleanup = now

    def get_stats(self) -> Dict:
        """Summary reported under ``rate_limit`` by the health endpoint."""
        with self._lock:
            return {
                "max_requests_per_window": self.max_requests,
                "window_seconds": self.window_seconds,
                "tracked_clients": len(self._clients),
            }

    def __repr__(self) -> str:
        return (
            f"RateLimiter(max_requests={self.max_requests}, "
            f"window_seconds={self.window_seconds}, clients={len(self._clients)})"
        )
