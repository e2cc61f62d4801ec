"""Prometheus metrics for the Securesign Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "securesign_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "securesign_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Action pipeline metrics
action_total = Counter(
    "securesign_operator_action_total",
    "Total number of handled pipeline actions",
    ["kind", "action", "result"],
)

action_duration_seconds = Histogram(
    "securesign_operator_action_duration_seconds",
    "Duration of pipeline actions in seconds",
    ["kind", "action"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

# Secret lifecycle metrics
secret_operations_total = Counter(
    "securesign_operator_secret_operations_total",
    "Total number of generated secret operations",
    ["component", "operation"],
)

# API call metrics
api_call_total = Counter(
    "securesign_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "securesign_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "securesign_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)

# Error metrics
error_total = Counter(
    "securesign_operator_error_total",
    "Total number of errors",
    ["kind", "error_type"],
)

# Resource status metrics
resource_status_total = Counter(
    "securesign_operator_resource_status_total",
    "Resource phase observations after a reconciliation",
    ["kind", "phase"],
)
