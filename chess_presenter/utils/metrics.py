"""
Centralized Prometheus metrics definitions for the Chess Presenter application.

This module uses the prometheus-client library to define the counters that
instrument PGN ingestion and cross-surface state replication. Grouping them
here provides a single, clear overview of the instrumentation points.
"""
from prometheus_client import Counter

# A common prefix for all application-specific metrics.
PREFIX = "chess_presenter"

# --- Ingestion Metrics ---

GAME_PARSE_OUTCOMES_TOTAL = Counter(
    f"{PREFIX}_game_parse_outcomes_total",
    "Total number of game segments parsed, by outcome.",
    ["outcome"],  # e.g., outcome="full", "position_only", "unparseable"
)

GAMES_SKIPPED_TOTAL = Counter(
    f"{PREFIX}_games_skipped_total",
    "Total number of game segments skipped during ingestion.",
    ["reason"],
)

EMPTY_BATCHES_TOTAL = Counter(
    f"{PREFIX}_empty_batches_total",
    "Total number of ingestion batches that produced zero games.",
)

# --- Replication Metrics ---

STATE_WRITES_TOTAL = Counter(
    f"{PREFIX}_state_writes_total",
    "Total number of viewer state snapshots written to shared storage.",
)

STATE_DELIVERIES_TOTAL = Counter(
    f"{PREFIX}_state_deliveries_total",
    "Total number of state updates delivered to subscribers, by channel.",
    ["channel"],  # e.g., channel="poll", "notification", "broadcast"
)

STATE_DECODE_FAILURES_TOTAL = Counter(
    f"{PREFIX}_state_decode_failures_total",
    "Total number of stored values that could not be decoded.",
    ["key"],
)

# --- Storage Metrics ---

STORAGE_TRANSIENT_ERRORS_TOTAL = Counter(
    f"{PREFIX}_storage_transient_errors_total",
    "Total number of transient storage errors that triggered a retry.",
    ["operation"],
)
