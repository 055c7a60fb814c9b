"""CloudWatch custom metrics emitter with background batching.

Publishes counters and latencies for the model calls, tool dispatches and
retry outcomes of the helpdesk agent.

Design
------
* Data points are collected in a thread-safe in-memory buffer.
* When enabled, a daemon thread flushes the buffer to CloudWatch every
  ``FLUSH_INTERVAL_SECONDS`` and once more at process exit.
* When disabled (the default locally), points are logged at DEBUG level and
  dropped on ``flush()``.
* Each ``put_metric_data`` call sends at most ``MAX_BATCH_SIZE`` points.

Usage
-----
>>> metrics = MetricsClient(enabled=False)
>>> metrics.record_model_call("agent_turn", latency_ms=812.0)
>>> metrics.record_model_call("analyze", latency_ms=90.0, error_type="TransientError")
>>> metrics.record_tool_call("search_kb", status="ok")
"""

from __future__ import annotations

import atexit
import logging
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "Helpdesk"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch API limit per PutMetricData call


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self, enabled: bool = False, namespace: str = NAMESPACE) -> None:
        self._enabled = enabled
        self._namespace = namespace
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None  # lazy-init

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        """Create the boto3 CloudWatch client on first use."""
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_model_call(
        self,
        operation: str,
        latency_ms: float,
        error_type: str | None = None,
    ) -> None:
        """Record one language-model call and whether it failed."""
        status = "failure" if error_type else "success"
        self._point(
            "Model/RequestCount", 1, "Count",
            Operation=operation, Status=status,
        )
        self._point("Model/Latency", latency_ms, "Milliseconds", Operation=operation)
        if error_type:
            self._point("Model/ErrorCount", 1, "Count", ErrorType=error_type)
        logger.debug(
            "Metric: model %s %s latency=%.1fms%s",
            operation, status, latency_ms,
            f" error={error_type}" if error_type else "",
        )

    def record_tool_call(self, tool_name: str, status: str) -> None:
        """Record a tool dispatch.  *status* is ``ok``, ``unknown`` or ``invalid``."""
        self._point("Tool/InvocationCount", 1, "Count", Tool=tool_name, Status=status)
        logger.debug("Metric: tool %s %s", tool_name, status)

    def record_retry(self, operation: str, attempt: int) -> None:
        """Record that *operation* is about to be retried after *attempt* failed."""
        self._point("Retry/Count", 1, "Count", Operation=operation)
        logger.debug("Metric: retry %s after attempt %d", operation, attempt)

    def record_fallback(self, operation: str) -> None:
        """Record that *operation* degraded to its fallback response."""
        self._point("Retry/FallbackCount", 1, "Count", Operation=operation)
        logger.debug("Metric: fallback %s", operation)

    def record_loop_outcome(self, outcome: str, iterations: int) -> None:
        """Record how an agent loop ended and how many model calls it took."""
        self._point("Agent/Iterations", iterations, "Count", Outcome=outcome)
        logger.debug("Metric: agent loop %s after %d iteration(s)", outcome, iterations)

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=self._namespace, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    def _point(self, name: str, value: float, unit: str, **dimensions: str) -> None:
        with self._lock:
            self._buffer.append(
                {
                    "MetricName": name,
                    "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
                    "Timestamp": datetime.now(UTC),
                    "Value": value,
                    "Unit": unit,
                }
            )

    def _start_flush_thread(self) -> None:
        """Start a daemon thread that flushes metrics periodically."""

        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info(
            "Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS,
        )
