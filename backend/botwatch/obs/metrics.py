"""Central registry for Prometheus metrics used across botwatch."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"botwatch_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"botwatch_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

INTERACTIONS_RECORDED = Counter(
	"botwatch_interactions_recorded_total",
	"Interactions recorded by the tracker",
	["action"],
)

BOT_CLASSIFICATIONS = Counter(
	"botwatch_bot_classifications_total",
	"Interactions classified as automated",
	["action"],
)

HEURISTIC_TRIGGERS = Counter(
	"botwatch_heuristic_triggers_total",
	"Heuristics that contributed to a suspicion score",
	["heuristic"],
)

TRACKED_KEYS = Gauge(
	"botwatch_tracked_keys",
	"Tracking keys currently held in memory",
)

EVICTED_KEYS = Counter(
	"botwatch_tracker_evicted_keys_total",
	"Tracking keys removed by the eviction sweep",
)

REPUTATION_WRITES = Counter(
	"botwatch_reputation_writes_total",
	"Offense counter updates persisted",
	["counter"],
)

REPUTATION_WRITE_FAILURES = Counter(
	"botwatch_reputation_write_failures_total",
	"Offense counter updates that failed",
)

ACCOUNTS_FLAGGED = Counter(
	"botwatch_accounts_flagged_total",
	"Accounts flagged after crossing an offense threshold",
)

BOT_CHECK_DEGRADED = Counter(
	"botwatch_bot_check_degraded_total",
	"Bot checks that failed and fell back to the configured default",
	["mode"],
)


def observe_request(route: str, method: str, status: int, duration_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(duration_seconds)
