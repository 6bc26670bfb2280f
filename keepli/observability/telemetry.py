"""
In-process telemetry for the save pipeline.

Nothing is shipped externally; events go to the log and counters/latencies stay
in memory so tests and the /health endpoint can read them back.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("keepli.telemetry")

_COUNTERS: dict[str, int] = {}
_LATENCIES: dict[str, list[float]] = {}


def _normalize_latency_name(metric_name: str) -> str:
    if metric_name.endswith("_ms"):
        return metric_name
    return f"{metric_name}.latency_ms"


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Callers pass hashes or redacted values, never raw secrets.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and return the new value.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
        - Writes to logger (debug level)
    """
    value = _COUNTERS.get(name, 0) + increment
    _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counters(prefix: str = "") -> dict[str, int]:
    """Snapshot of counters, optionally filtered by name prefix."""
    return {name: value for name, value in _COUNTERS.items() if name.startswith(prefix)}


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Context manager recording wall-clock duration of the enclosed block in ms.

    Works around awaits too: `with time_block("ai.summarize"): await ...`.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        normalized = _normalize_latency_name(metric_name)
        logger.debug("timing=%s ms=%.2f", normalized, elapsed_ms)
        _LATENCIES.setdefault(normalized, []).append(elapsed_ms)


def get_latency_stats(metric_name: str) -> dict[str, float]:
    """
    Get latency statistics (count, min, max, avg, p50, p95) for a metric.
    """
    samples = sorted(_LATENCIES.get(_normalize_latency_name(metric_name), []))
    if not samples:
        return {"count": 0, "min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p95": 0.0}

    count = len(samples)
    return {
        "count": count,
        "min": samples[0],
        "max": samples[-1],
        "avg": sum(samples) / count,
        "p50": samples[int(count * 0.50)],
        "p95": samples[min(int(count * 0.95), count - 1)],
    }


def reset_telemetry() -> None:
    """
    Clear counters and latencies (useful for tests).

    Side Effects:
        - Clears _COUNTERS and _LATENCIES
    """
    _COUNTERS.clear()
    _LATENCIES.clear()
