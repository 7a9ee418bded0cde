"""
Prometheus metrics for Kho-Kho Live.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
TIMER_SNAPSHOTS = Counter(
    "kk_timer_snapshots_total",
    "Timer snapshots applied by viewer sessions",
    ["source"],
)
TIMER_FETCH_FAILURES = Counter(
    "kk_timer_fetch_failures_total",
    "Initial timer fetches that failed or returned no row",
    ["reason"],
)
TIMER_COMMANDS = Counter(
    "kk_timer_commands_total",
    "Scorer timer commands",
    ["command", "outcome"],
)
CHANGE_FEED_DROPPED = Counter(
    "kk_change_feed_dropped_total",
    "Change-feed messages ignored by viewer sessions",
    ["reason"],
)

# ── Histograms ──────────────────────────────────────────────────────────
TIMER_FETCH_LATENCY = Histogram(
    "kk_timer_fetch_latency_seconds",
    "Latency of the initial timer row fetch",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
WS_TIMER_SESSIONS = Gauge(
    "kk_ws_timer_sessions_active",
    "Currently open WebSocket timer sessions",
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram) -> AsyncIterator[None]:
    """Async context manager recording the wrapped block's duration."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.observe(time.perf_counter() - start)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
