"""Prometheus metrics for monitoring plan and payment mutations and rate lookups"""

from prometheus_client import Counter, Histogram

# Mutation metrics
plan_mutation_counter = Counter(
    "pledge_plan_mutations_total",
    "Payment plans created or updated",
    ["operation", "distribution_type"],  # create | update | status, fixed | custom
)

payment_mutation_counter = Counter(
    "pledge_payment_mutations_total",
    "Payments created or updated",
    ["operation", "shape"],  # create | update, direct | split
)

rejected_mutation_counter = Counter(
    "pledge_mutations_rejected_total",
    "Mutations refused for business-rule violations",
    ["operation", "error_type"],
)

# Exchange rate metrics
rate_fetch_failures_counter = Counter(
    "exchange_rate_fetch_failures_total",
    "Failed exchange rate API calls",
)

degraded_conversion_counter = Counter(
    "degraded_conversions_total",
    "Conversions that fell back to a rate of 1",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_plan_mutation(operation: str, distribution_type: str) -> None:
    plan_mutation_counter.labels(operation=operation, distribution_type=distribution_type).inc()


def record_payment_mutation(operation: str, is_split: bool) -> None:
    payment_mutation_counter.labels(operation=operation, shape="split" if is_split else "direct").inc()


def record_rejection(operation: str, errors) -> None:
    """Count each distinct error type once per rejected mutation"""
    for error_type in {error.error_type for error in errors}:
        rejected_mutation_counter.labels(operation=operation, error_type=error_type).inc()


def record_degraded_conversions(warnings) -> None:
    """Count warnings produced by rate fallbacks"""
    for warning in warnings:
        if "exchange rate" in warning.lower():
            degraded_conversion_counter.inc()
