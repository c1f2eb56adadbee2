"""Prometheus metrics for the State Backend Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "state_backend_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "state_backend_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "state_backend_operator_error_total",
    "Total number of errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "state_backend_operator_resource_status_total",
    "Resource status transitions",
    ["kind", "status"],
)

# Planning metrics
plan_total = Counter(
    "state_backend_operator_plan_total",
    "Total number of backend plans computed",
    ["provider", "result"],
)

plan_duration_seconds = Histogram(
    "state_backend_operator_plan_duration_seconds",
    "Duration of backend planning in seconds",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5],
)

planned_steps = Gauge(
    "state_backend_operator_planned_steps",
    "Number of steps in the most recent plan",
    ["provider"],
)

unsupported_provider_total = Counter(
    "state_backend_operator_unsupported_provider_total",
    "Plans requested for a cloud provider with no resources",
    ["provider"],
)

# Provisioning metrics
provision_operations_total = Counter(
    "state_backend_operator_provision_operations_total",
    "Total number of provisioning operations",
    ["resource_type", "result"],
)

# API call metrics
api_call_total = Counter(
    "state_backend_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "state_backend_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "state_backend_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)
