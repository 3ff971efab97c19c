"""Timing helpers for DEBUG-mode request profiling."""
import time
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Current time in milliseconds from the high-resolution timer."""
    return time.perf_counter() * 1000


def log_elapsed(start_ms: float, label: str, log_fn: Optional[Callable[[str], None]] = None) -> float:
    """
    Log time elapsed since start_ms and return the current time, so calls chain:

        t = now_ms()
        t = log_elapsed(t, "fetch_catalog")
        t = log_elapsed(t, "reconcile")
    """
    elapsed = now_ms() - start_ms
    (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")
    return now_ms()
