"""Node telemetry - offer counters, execution timings, heartbeat counts.

Counters are kept twice: as plain integers for the JSON snapshot served on
/metrics and sent with heartbeats, and as prometheus_client collectors on a
per-instance registry for the text exposition format.
"""

from __future__ import annotations

import time
from collections import deque

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from shh_node.models.records import MetricsSnapshot

PROMETHEUS_CONTENT_TYPE = CONTENT_TYPE_LATEST
EXECUTION_WINDOW = 100  # completions kept for the rolling average

_EXECUTION_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0)


class NodeMetrics:
    """Counters and timers for one relay node process."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._start_time = time.monotonic()
        self._execution_times: deque[float] = deque(maxlen=EXECUTION_WINDOW)
        self._snapshot = MetricsSnapshot()

        self.registry = registry or CollectorRegistry()
        self._offers = Counter(
            "shh_node_offers",
            "Offers processed by outcome.",
            labelnames=("outcome",),
            registry=self.registry,
        )
        self._rejections = Counter(
            "shh_node_offer_rejections",
            "Offers dropped at admission, by reason.",
            labelnames=("reason",),
            registry=self.registry,
        )
        self._heartbeats = Counter(
            "shh_node_heartbeats",
            "Heartbeats sent, by result.",
            labelnames=("result",),
            registry=self.registry,
        )
        self._earnings = Counter(
            "shh_node_earnings_lamports",
            "Fees earned from completed offers, in lamports.",
            registry=self.registry,
        )
        self._execution_seconds = Histogram(
            "shh_node_execution_seconds",
            "Wall-clock time from claim to resolution for completed offers.",
            buckets=_EXECUTION_BUCKETS,
            registry=self.registry,
        )
        self._uptime = Gauge(
            "shh_node_uptime_seconds",
            "Node uptime in seconds.",
            registry=self.registry,
        )
        self._uptime.set_function(self.uptime_seconds)

    def uptime_seconds(self) -> float:
        return time.monotonic() - self._start_time

    # ── Offers ────────────────────────────────────────────

    def record_offer_received(self) -> None:
        self._snapshot.offers_received += 1
        self._offers.labels(outcome="received").inc()

    def record_offer_rejected(self, reason: str) -> None:
        self._snapshot.offers_rejected += 1
        self._rejections.labels(reason=reason).inc()

    def record_claim_lost(self) -> None:
        self._snapshot.claims_lost += 1
        self._offers.labels(outcome="claim_lost").inc()

    def record_offer_accepted(self) -> None:
        self._snapshot.offers_accepted += 1
        self._offers.labels(outcome="accepted").inc()

    def record_offer_completed(self, execution_seconds: float) -> None:
        self._snapshot.offers_completed += 1
        self._offers.labels(outcome="completed").inc()
        self._execution_times.append(execution_seconds)
        self._execution_seconds.observe(execution_seconds)

    def record_offer_failed(self) -> None:
        self._snapshot.offers_failed += 1
        self._offers.labels(outcome="failed").inc()

    def record_earnings(self, lamports: int) -> None:
        if lamports <= 0:
            return
        self._snapshot.total_earnings += lamports
        self._earnings.inc(lamports)

    # ── Heartbeats ────────────────────────────────────────

    def record_heartbeat(self) -> None:
        self._snapshot.heartbeats += 1
        self._heartbeats.labels(result="sent").inc()

    def record_heartbeat_error(self) -> None:
        self._snapshot.heartbeat_errors += 1
        self._heartbeats.labels(result="error").inc()

    # ── Exposition ────────────────────────────────────────

    def snapshot(self) -> MetricsSnapshot:
        times = self._execution_times
        avg_ms = round(sum(times) / len(times) * 1000) if times else 0
        s = self._snapshot
        return MetricsSnapshot(
            offers_received=s.offers_received,
            offers_accepted=s.offers_accepted,
            offers_completed=s.offers_completed,
            offers_failed=s.offers_failed,
            offers_rejected=s.offers_rejected,
            claims_lost=s.claims_lost,
            heartbeats=s.heartbeats,
            heartbeat_errors=s.heartbeat_errors,
            avg_execution_time=avg_ms,
            total_earnings=s.total_earnings,
            uptime=int(self.uptime_seconds()),
        )

    def prometheus_text(self) -> str:
        return generate_latest(self.registry).decode("utf-8")
