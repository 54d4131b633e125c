"""Request latency logging middleware."""

import logging
import time
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_THRESHOLD_MS = 1000
# Checkbox receipt calls may open a shift first
VERY_SLOW_REQUEST_THRESHOLD_MS = 5000

HEALTH_PATHS = ("/health", "/health/ready")


class LatencyStats:
    """In-memory latency samples reported by the /health endpoint."""

    def __init__(self, max_samples: int = 1000) -> None:
        self._samples: list[float] = []
        self._max_samples = max_samples

    def record(self, latency_ms: float) -> None:
        """Record a latency sample."""
        self._samples.append(latency_ms)
        if len(self._samples) > self._max_samples:
            self._samples = self._samples[-self._max_samples:]

    def get_stats(self) -> dict[str, float]:
        """Get aggregated stats over all recorded requests."""
        if not self._samples:
            return {"total_requests": 0, "avg_latency_ms": 0, "p50_latency_ms": 0, "p95_latency_ms": 0}

        latencies = sorted(self._samples)
        total = len(latencies)
        return {
            "total_requests": total,
            "avg_latency_ms": round(sum(latencies) / total, 2),
            "p50_latency_ms": round(latencies[int(total * 0.5)], 2),
            "p95_latency_ms": round(latencies[min(int(total * 0.95), total - 1)], 2),
        }


_latency_stats: LatencyStats | None = None


def get_latency_stats() -> LatencyStats:
    """Get or create the global latency stats instance."""
    global _latency_stats
    if _latency_stats is None:
        _latency_stats = LatencyStats()
    return _latency_stats


async def latency_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log each request's status and latency, and record it in the stats.

    Slow requests are logged at warning or error level. Health checks are
    neither recorded nor logged unless slow.
    """
    start_time = time.perf_counter()
    method = request.method
    path = request.url.path
    is_health_check = path in HEALTH_PATHS

    response = None
    error_occurred = False

    try:
        response = await call_next(request)
        return response
    except Exception:
        error_occurred = True
        raise
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code if response else 500
        log_msg = f"{method} {path} - {status_code} - {latency_ms:.2f}ms"

        if not is_health_check:
            get_latency_stats().record(latency_ms)

        if is_health_check:
            if latency_ms > 100:
                logger.debug(log_msg)
        elif error_occurred or status_code >= 500:
            logger.error(log_msg)
        elif latency_ms > VERY_SLOW_REQUEST_THRESHOLD_MS:
            logger.error(f"VERY SLOW REQUEST: {log_msg}")
        elif latency_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(f"SLOW REQUEST: {log_msg}")
        elif status_code >= 400:
            logger.warning(log_msg)
        else:
            logger.info(log_msg)
