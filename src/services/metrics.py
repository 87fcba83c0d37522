"""CloudWatch custom metrics emitter with background batching.

Publishes per-call metrics (count, latency, errors) for every external
service the backend calls: the LLM providers (Google AI, DeepSeek, Azure
OpenAI, Anthropic) and the Google Calendar / OAuth APIs.

* Data points are buffered in memory under a lock.
* With ``METRICS_ENABLED=true`` a daemon thread pushes the buffer to
  CloudWatch every ``FLUSH_INTERVAL_SECONDS``; otherwise points are only
  logged at DEBUG level.
* ``put_metric_data`` accepts at most 1 000 points per request.

>>> from src.services.metrics import metrics
>>> with metrics.timed("google-calendar", "GET /events"):
...     client.list_events(...)
>>> metrics.record_failure("deepseek", "llm_invoke", error_type="RateLimitExceededError")
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = os.getenv("METRICS_NAMESPACE", "DocWebsite")
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000


def _datum(
    name: str, dimensions: dict[str, str], value: float, unit: str, timestamp: datetime,
) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
        "Timestamp": timestamp,
        "Value": value,
        "Unit": unit,
    }


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Recording ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        now = datetime.now(UTC)
        self._extend(
            _datum("ExternalAPI/RequestCount", {"Service": service, "Status": "success"}, 1, "Count", now),
            _datum("ExternalAPI/Latency", {"Service": service, "Operation": operation},
                   latency_ms, "Milliseconds", now),
        )
        logger.debug("Metric: %s %s success latency=%.1fms", service, operation, latency_ms)

    def record_failure(
        self, service: str, operation: str, error_type: str, latency_ms: float = 0,
    ) -> None:
        now = datetime.now(UTC)
        points = [
            _datum("ExternalAPI/RequestCount", {"Service": service, "Status": "failure"}, 1, "Count", now),
            _datum("ExternalAPI/ErrorCount", {"Service": service, "ErrorType": error_type}, 1, "Count", now),
        ]
        if latency_ms > 0:
            points.append(
                _datum("ExternalAPI/Latency", {"Service": service, "Operation": operation},
                       latency_ms, "Milliseconds", now)
            )
        self._extend(*points)
        logger.debug(
            "Metric: %s %s failure error=%s latency=%.1fms",
            service, operation, error_type, latency_ms,
        )

    @contextmanager
    def timed(self, service: str, operation: str) -> Iterator[None]:
        """Record success or failure (with latency) around a block."""
        t0 = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self.record_failure(
                service, operation, type(exc).__name__,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise
        self.record_success(service, operation, latency_ms=(time.perf_counter() - t0) * 1000)

    # ── Publishing ───────────────────────────────────────────────────

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch, self._buffer = self._buffer, []

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    def _extend(self, *points: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.extend(points)

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        threading.Thread(target=_loop, daemon=True, name="metrics-flush").start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
