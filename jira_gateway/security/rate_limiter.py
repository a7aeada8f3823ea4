"""
Rate limiting for outbound Jira calls.

A fixed-window counter keyed by caller. Each key gets a window that opens on
its first admission and closes ``window_ms`` later; inside a window at most
``max_requests`` calls are admitted.

Because windows are fixed rather than sliding, a burst straddling a window
boundary can admit up to ``2 * max_requests`` calls in quick succession. This
is accepted behavior and is kept as is.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    """Admission counter for one key."""

    count: int
    window_start_ms: float


class RateLimiter:
    """Keyed fixed-window request admission counter."""

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        cleanup_probability: float = 0.01,
        enabled: bool = True,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the limiter.

        Args:
            max_requests: Calls admitted per key per window (0 rejects everything)
            window_ms: Window duration in milliseconds
            cleanup_probability: Fraction of ``is_allowed`` calls that also
                sweep expired windows
            enabled: When False every call is admitted
            clock: Time source in seconds (defaults to ``time.monotonic``)
        """
        if max_requests < 0:
            raise ValueError("max_requests must be >= 0")
        if window_ms <= 0:
            raise ValueError("window_ms must be > 0")
        if not 0.0 <= cleanup_probability <= 1.0:
            raise ValueError("cleanup_probability must be between 0 and 1")

        self.max_requests = max_requests
        self.window_ms = window_ms
        self.cleanup_probability = cleanup_probability
        self.enabled = enabled
        self._clock = clock or time.monotonic
        self._windows: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()
        self._stats = {"allowed": 0, "rejected": 0, "evicted": 0}

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _is_expired(self, window: RateWindow, now_ms: float) -> bool:
        return now_ms - window.window_start_ms >= self.window_ms

    def is_allowed(self, key: str) -> bool:
        """
        Admit or reject a call for ``key``.

        Args:
            key: Opaque caller identifier

        Returns:
            True if the call is admitted, False if the quota for the current
            window is exhausted
        """
        if not self.enabled:
            return True

        if self.cleanup_probability and random.random() < self.cleanup_probability:
            self.cleanup()

        with self._lock:
            now_ms = self._now_ms()
            allowed = self._admit(key, now_ms)
            self._stats["allowed" if allowed else "rejected"] += 1

        return allowed

    def _admit(self, key: str, now_ms: float) -> bool:
        """Check-then-increment; caller must hold the lock."""
        if self.max_requests == 0:
            return False

        window = self._windows.get(key)

        if window is None or self._is_expired(window, now_ms):
            self._windows[key] = RateWindow(count=1, window_start_ms=now_ms)
            return True

        if window.count < self.max_requests:
            window.count += 1
            return True

        return False

    def reset(self, key: str) -> None:
        """Forget the window for ``key`` as if it had never been seen."""
        with self._lock:
            self._windows.pop(key, None)

    def cleanup(self) -> int:
        """
        Evict every expired window.

        A window that has expired has not admitted anything since it closed,
        otherwise it would have been reset.

        Returns:
            Number of evicted keys
        """
        with self._lock:
            now_ms = self._now_ms()
            expired = [
                key for key, window in self._windows.items()
                if self._is_expired(window, now_ms)
            ]
            for key in expired:
                del self._windows[key]
            self._stats["evicted"] += len(expired)

        if expired:
            logger.debug(
                "Evicted expired rate limit windows",
                extra={"evicted": len(expired)},
            )
        return len(expired)

    @property
    def tracked_keys(self) -> int:
        """Number of keys currently holding a window."""
        with self._lock:
            return len(self._windows)

    def get_statistics(self) -> Dict[str, Any]:
        """Get rate limiting statistics."""
        with self._lock:
            allowed = self._stats["allowed"]
            rejected = self._stats["rejected"]
            return {
                "allowed": allowed,
                "rejected": rejected,
                "total": allowed + rejected,
                "rejection_rate": rejected / max(1, allowed + rejected),
                "evicted": self._stats["evicted"],
                "tracked_keys": len(self._windows),
                "max_requests": self.max_requests,
                "window_ms": self.window_ms,
            }
