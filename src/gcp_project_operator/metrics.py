"""Prometheus metrics for the GCP Project Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "gcp_project_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "gcp_project_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "gcp_project_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

# Google Cloud API call metrics
gcp_api_call_total = Counter(
    "gcp_project_operator_gcp_api_call_total",
    "Total number of Google Cloud API calls",
    ["operation", "result"],
)

gcp_api_call_duration_seconds = Histogram(
    "gcp_project_operator_gcp_api_call_duration_seconds",
    "Duration of Google Cloud API calls in seconds",
    ["operation"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)
