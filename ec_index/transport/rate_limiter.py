# ec_index/transport/rate_limiter.py

"""Request pacing and windowed call budgets."""

import logging
import threading
import time
from dataclasses import dataclass

logger = logging.getLogger("ec_index.transport")


class RateLimiter:
    """Enforce a minimum spacing between permitted calls.

    ``acquire()`` blocks until ``1 / requests_per_second`` seconds have
    passed since the previous permitted call on this instance.  Callers
    are served one at a time in the order they reach the lock.
    """

    def __init__(self, requests_per_second: float) -> None:
        if requests_per_second <= 0:
            msg = "requests_per_second must be positive"
            raise ValueError(msg)
        self.min_interval: float = 1.0 / requests_per_second
        self._last_request: float | None = None
        self._lock = threading.Lock()

    def acquire(self) -> float:
        """Wait for the next slot; return the seconds spent waiting."""
        with self._lock:
            waited = 0.0
            now = time.monotonic()
            if self._last_request is not None:
                elapsed = now - self._last_request
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug("Rate limiter waiting %.2fs", waited)
                    time.sleep(waited)
                    now = time.monotonic()
            self._last_request = now
            return waited


@dataclass
class RateLimitDecision:
    """Outcome of a single ``RateLimitStore.hit``."""

    allowed: bool
    remaining: int
    reset_at: float


@dataclass
class _WindowRecord:
    count: int
    reset_at: float


class RateLimitStore:
    """Fixed-window call counters keyed by identifier.

    The owner decides the identifier, limit and window per call and is
    responsible for calling :meth:`sweep` to drop expired windows.
    """

    def __init__(self) -> None:
        self._records: dict[str, _WindowRecord] = {}
        self._lock = threading.Lock()

    def hit(
        self,
        identifier: str,
        limit: int,
        window_seconds: float,
    ) -> RateLimitDecision:
        """Count one call against ``identifier``'s current window."""
        now = time.time()
        with self._lock:
            record = self._records.get(identifier)
            if record is None or now > record.reset_at:
                record = _WindowRecord(
                    count=1, reset_at=now + window_seconds,
                )
                self._records[identifier] = record
                return RateLimitDecision(
                    allowed=True,
                    remaining=limit - 1,
                    reset_at=record.reset_at,
                )
            if record.count < limit:
                record.count += 1
                return RateLimitDecision(
                    allowed=True,
                    remaining=limit - record.count,
                    reset_at=record.reset_at,
                )
            return RateLimitDecision(
                allowed=False, remaining=0, reset_at=record.reset_at,
            )

    def sweep(self) -> int:
        """Remove expired windows; return how many were dropped."""
        now = time.time()
        with self._lock:
            expired = [
                key
                for key, record in self._records.items()
                if now > record.reset_at
            ]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug("Swept %d expired rate-limit windows", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)
