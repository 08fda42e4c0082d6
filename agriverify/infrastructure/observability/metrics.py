"""Prometheus metrics for monitoring evaluation outcomes, risk tiers, and evidence providers"""

from prometheus_client import Counter, Histogram

# Evaluation metrics
evaluation_counter = Counter(
    "agriverify_evaluation_total",
    "Total fraud evaluations finished",
    ["outcome"],  # COMPLETED | FAILED
)

risk_tier_counter = Counter(
    "agriverify_risk_tier_total",
    "Completed evaluations by risk tier",
    ["tier"],  # LOW | MEDIUM | HIGH
)

evaluation_conflict_counter = Counter(
    "agriverify_evaluation_conflicts_total",
    "Evaluation requests rejected because one was already in flight",
)

# Evidence provider metrics
provider_latency_histogram = Histogram(
    "agriverify_provider_latency_seconds",
    "Evidence provider call duration",
    ["provider"],
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

provider_failure_counter = Counter(
    "agriverify_provider_failures_total",
    "Evidence provider calls that failed or timed out",
    ["provider"],  # ocr | satellite | land_detector
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_evaluation(status: str, risk_tier: str | None) -> None:
    """Record evaluation outcome and, for completed runs, the tier distribution"""
    evaluation_counter.labels(outcome=status).inc()
    if risk_tier:
        risk_tier_counter.labels(tier=risk_tier).inc()
