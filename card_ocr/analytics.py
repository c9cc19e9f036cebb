"""
Usage accounting for the recognition orchestrator.

One UsageState instance lives inside one orchestrator. Every mutation goes
through a single lock so concurrent requests can share it.
"""

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_ERROR_SAMPLES = 50
MAX_TIMING_SAMPLES = 100
RECENT_ERROR_WINDOW = 10

COST_PER_CLOUD_REQUEST = 0.003

# Recommendation thresholds
SLOW_LOCAL_MS = 15000
SLOW_CLOUD_MS = 5000
COST_WARNING = 10.0
ERROR_WARNING = 5


@dataclass(frozen=True)
class ErrorSample:
    backend: str
    kind: str
    message: str
    timestamp: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "backend": self.backend,
            "kind": self.kind,
            "message": self.message,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TimingSample:
    backend: str
    elapsed_ms: float
    success: bool
    timestamp: str

    def to_dict(self) -> Dict:
        return {
            "backend": self.backend,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "success": self.success,
            "timestamp": self.timestamp,
        }


class UsageState:
    """Invocation counters, capped error/timing logs and the cloud quota window."""

    def __init__(
        self,
        quota_ceiling: int = 1000,
        quota_period: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.quota_ceiling = quota_ceiling
        self.quota_period = quota_period
        self._clock = clock
        self._lock = threading.Lock()

        self._counts: Counter = Counter()
        self._errors: deque = deque(maxlen=MAX_ERROR_SAMPLES)
        self._timings: deque = deque(maxlen=MAX_TIMING_SAMPLES)
        self._quota_used = 0
        self._period_start = clock()

    def _roll_quota_period(self) -> None:
        # Caller holds the lock
        now = self._clock()
        if now - self._period_start >= self.quota_period:
            logger.info(f"Quota period rolled over ({self._quota_used} requests used)")
            self._quota_used = 0
            self._period_start = now

    def record_invocation(self, backend: str) -> None:
        with self._lock:
            self._counts[backend] += 1

    def record_error(self, backend: str, kind: str, message: str) -> None:
        sample = ErrorSample(backend, kind, message, self._clock().isoformat())
        with self._lock:
            self._errors.append(sample)

    def record_timing(self, backend: str, elapsed_ms: float, success: bool = True) -> None:
        sample = TimingSample(backend, elapsed_ms, success, self._clock().isoformat())
        with self._lock:
            self._timings.append(sample)

    def consume_quota(self, amount: int = 1) -> None:
        with self._lock:
            self._roll_quota_period()
            self._quota_used += amount

    def exhaust_quota(self) -> None:
        """Mark the current period as spent, e.g. after the provider answered 429."""
        with self._lock:
            self._roll_quota_period()
            self._quota_used = max(self._quota_used, self.quota_ceiling)

    def quota_exhausted(self) -> bool:
        with self._lock:
            self._roll_quota_period()
            return self._quota_used >= self.quota_ceiling

    def quota_remaining(self) -> int:
        with self._lock:
            self._roll_quota_period()
            return max(0, self.quota_ceiling - self._quota_used)

    def count(self, backend: str) -> int:
        with self._lock:
            return self._counts[backend]

    def reset(self) -> None:
        """Clear every counter, sample and the quota window."""
        with self._lock:
            self._counts.clear()
            self._errors.clear()
            self._timings.clear()
            self._quota_used = 0
            self._period_start = self._clock()
        logger.info("Usage counters reset")

    def snapshot(self, cloud_backend: Optional[str] = None) -> Dict:
        """
        Read-only copy of the current state.

        Args:
            cloud_backend: Identifier whose count feeds the cost estimate

        Returns:
            Dictionary with counts, quota, recent samples and averages
        """
        with self._lock:
            self._roll_quota_period()
            counts = dict(self._counts)
            errors = [e.to_dict() for e in self._errors]
            timings = [t.to_dict() for t in self._timings]
            quota_used = self._quota_used
            period_start = self._period_start

        backends = sorted(set(counts) | {t["backend"] for t in timings})
        averages = {}
        for backend in backends:
            samples = [t["elapsed_ms"] for t in timings if t["backend"] == backend and t["success"]]
            averages[backend] = round(sum(samples) / len(samples), 2) if samples else 0.0

        cloud_count = counts.get(cloud_backend, 0) if cloud_backend else 0

        return {
            "counts": counts,
            "quota": {
                "ceiling": self.quota_ceiling,
                "used": quota_used,
                "remaining": max(0, self.quota_ceiling - quota_used),
                "period_start": period_start.isoformat(),
                "period_days": self.quota_period.days,
            },
            "cost_estimate": round(cloud_count * COST_PER_CLOUD_REQUEST, 4),
            "average_time_ms": averages,
            "errors": errors,
            "recent_errors": errors[-RECENT_ERROR_WINDOW:],
            "timings": timings,
        }

    def recommendations(self, local_backend: str, cloud_backend: str) -> List[str]:
        snapshot = self.snapshot(cloud_backend)
        averages = snapshot["average_time_ms"]
        recommendations = []

        if averages.get(local_backend, 0.0) > SLOW_LOCAL_MS:
            recommendations.append(
                "Local recognition is slow; consider GPU mode or smaller input images"
            )
        if averages.get(cloud_backend, 0.0) > SLOW_CLOUD_MS:
            recommendations.append(
                "Cloud response times are high, check network connectivity"
            )
        if snapshot["cost_estimate"] > COST_WARNING:
            recommendations.append(
                f"Cloud cost estimate: ${snapshot['cost_estimate']:.2f}. Consider usage optimization."
            )
        if len(snapshot["recent_errors"]) > ERROR_WARNING:
            recommendations.append(
                f"High error rate detected ({len(snapshot['recent_errors'])} recent errors). "
                "Check API configuration and network connectivity."
            )
        return recommendations


def elapsed_ms(start: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - start) * 1000.0
