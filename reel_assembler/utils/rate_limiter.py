"""Rate Limiter - throttles asset downloads per upstream host."""

import threading
import time
from collections import defaultdict
from typing import Optional

from reel_assembler.core.errors import JobCancelledError


class RateLimiter:
    """Thread-safe sliding-window rate limiter keyed by host."""

    def __init__(self, max_calls: int = 60, time_window: float = 60.0):
        """
        Initialize rate limiter.

        Args:
            max_calls: Maximum number of calls allowed in time_window
            time_window: Time window in seconds (default: 60 seconds)
        """
        self.max_calls = max_calls
        self.time_window = time_window

        # Call timestamps per host
        self.calls = defaultdict(list)
        self.lock = threading.Lock()

    def wait_if_needed(self, endpoint: str = "default", cancel_event: Optional[threading.Event] = None) -> None:
        """
        Block until a call to endpoint fits in the window, then record it.

        The lock is only held to inspect the window, so a throttled host
        never stalls callers of other hosts.

        Args:
            endpoint: Endpoint identifier (for per-host limiting)
            cancel_event: Optional cancellation token that interrupts the wait

        Raises:
            JobCancelledError: If cancel_event is set while waiting
        """
        while True:
            with self.lock:
                now = time.monotonic()
                calls = self.calls[endpoint]
                calls[:] = [call_time for call_time in calls if now - call_time < self.time_window]
                if len(calls) < self.max_calls:
                    calls.append(now)
                    return
                wait_time = calls[0] + self.time_window - now

            if cancel_event is None:
                time.sleep(wait_time)
            elif cancel_event.wait(wait_time):
                raise JobCancelledError(f"Cancelled while waiting for the {endpoint} rate limit")


_download_limiter: Optional[RateLimiter] = None
_download_limiter_lock = threading.Lock()


def get_download_limiter(max_calls: int = 30, time_window: float = 60.0) -> RateLimiter:
    """Get or create the shared asset download rate limiter; the first caller's limits win."""
    global _download_limiter
    with _download_limiter_lock:
        if _download_limiter is None:
            _download_limiter = RateLimiter(max_calls=max_calls, time_window=time_window)
        return _download_limiter
