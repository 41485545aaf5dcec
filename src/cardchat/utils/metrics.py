"""
Prometheus metrics for cardchat.

Exposed at ``GET /metrics`` in the default registry.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Use standard Prometheus naming conventions: namespace_subsystem_name_unit
NAMESPACE = "cardchat"

request_duration_seconds = Histogram(
    f"{NAMESPACE}_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path", "status"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)


# ============================================================================
# Admission Control
# ============================================================================

rate_limit_decisions_total = Counter(
    f"{NAMESPACE}_rate_limit_decisions_total",
    "Chat admission decisions",
    ["outcome"],  # "admitted" or "denied"
)

rate_limit_windows_active = Gauge(
    f"{NAMESPACE}_rate_limit_windows_active",
    "Rate windows held after the last sweep",
)


# ============================================================================
# Stream Relay
# ============================================================================

streams_active = Gauge(
    f"{NAMESPACE}_streams_active",
    "Chat streams currently being relayed",
)

streams_total = Counter(
    f"{NAMESPACE}_streams_total",
    "Relayed chat streams by terminal state",
    ["outcome"],  # "done", "error", "disconnected"
)

stream_events_total = Counter(
    f"{NAMESPACE}_stream_events_total",
    "SSE frames emitted to clients",
    ["type"],
)

tokens_total = Counter(
    f"{NAMESPACE}_tokens_total",
    "Model tokens consumed",
    ["kind"],  # "input" or "output"
)


# ============================================================================
# Tools
# ============================================================================

tool_calls_total = Counter(
    f"{NAMESPACE}_tool_calls_total",
    "External data tool invocations",
    ["tool_name", "status"],  # status: "success" or "error"
)

tool_call_duration_seconds = Histogram(
    f"{NAMESPACE}_tool_call_duration_seconds",
    "External data tool duration in seconds",
    ["tool_name"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

tool_cache_hits_total = Counter(
    f"{NAMESPACE}_tool_cache_hits_total",
    "Tool results served from the in-process cache",
    ["tool_name"],
)


# ============================================================================
# Database
# ============================================================================

db_pool_connections = Gauge(
    f"{NAMESPACE}_db_pool_connections",
    "Number of database connections by state",
    ["state"],  # "free" or "used"
)
