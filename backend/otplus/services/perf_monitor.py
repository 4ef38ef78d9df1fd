"""Performance monitoring utilities for the overtime analysis engine."""
import time
import logging
import threading
import functools
from typing import Any, Callable, Dict, List

logger = logging.getLogger("otplus-api.perf")


def timed(func: Callable) -> Callable:
    """
    Decorator that measures and logs execution time for synchronous functions.

    Usage::

        @timed
        def analyze(...):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                f"{func.__qualname__} took {duration_ms}ms",
                extra={"function_name": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper


class PerformanceTracker:
    """
    Thread-safe in-memory tracker for engine-level metrics.

    Tracks:
    - Analysis runs completed, with entry and user counts
    - Cumulative and average run duration, plus the slowest run
    - Failed runs broken down by source (engine, worker, api)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._runs: int = 0
        self._entries_processed: int = 0
        self._users_processed: int = 0
        self._durations_ms: List[float] = []
        self._slowest_run_ms: float = 0.0
        self._error_counts: Dict[str, int] = {}   # source -> count

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def record_run(self, duration_ms: float, entry_count: int, user_count: int) -> None:
        """Call once when an ``analyze`` run finishes successfully."""
        with self._lock:
            self._runs += 1
            self._entries_processed += entry_count
            self._users_processed += user_count
            self._durations_ms.append(duration_ms)
            self._slowest_run_ms = max(self._slowest_run_ms, duration_ms)

    def record_error(self, source: str) -> None:
        with self._lock:
            self._error_counts[source] = self._error_counts.get(source, 0) + 1

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """
        Return a snapshot of all collected metrics.

        Returns
        -------
        dict with keys:
            runs                 : int
            entries_processed    : int
            users_processed      : int
            avg_run_duration_ms  : float  (0 if no runs)
            slowest_run_ms       : float
            error_count          : int    (total across sources)
            error_count_by_source: dict   {source: count}
        """
        with self._lock:
            avg = (
                round(sum(self._durations_ms) / len(self._durations_ms), 2)
                if self._durations_ms
                else 0.0
            )
            return {
                "runs": self._runs,
                "entries_processed": self._entries_processed,
                "users_processed": self._users_processed,
                "avg_run_duration_ms": avg,
                "slowest_run_ms": round(self._slowest_run_ms, 2),
                "error_count": sum(self._error_counts.values()),
                "error_count_by_source": dict(self._error_counts),
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._runs = 0
            self._entries_processed = 0
            self._users_processed = 0
            self._durations_ms.clear()
            self._slowest_run_ms = 0.0
            self._error_counts.clear()


# Module-level singleton; import this instance everywhere else.
tracker = PerformanceTracker()
