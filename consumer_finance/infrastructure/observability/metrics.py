"""Prometheus metrics for onboarding, account linking, loan decisions and event delivery"""

from prometheus_client import Counter, Histogram

# Onboarding and account provisioning
onboarding_counter = Counter(
    "consumer_onboarding_total",
    "Consumer onboarding attempts",
    ["outcome"],  # onboarded | conflict
)

account_link_counter = Counter(
    "account_link_total",
    "Idempotent account creations",
    ["resource", "outcome"],  # resource: principal_account | vendor_linked_account; outcome: created | existing
)

vendor_link_failure_counter = Counter(
    "vendor_link_failures_total",
    "Vendor links that failed during onboarding fan-out",
)

# Loan lifecycle
loan_application_counter = Counter(
    "loan_application_total",
    "Loan application submissions and cancellations",
    ["outcome"],  # submitted | conflict | cancelled
)

loan_decision_counter = Counter(
    "loan_decision_total",
    "Decisions recorded on loan applications",
    ["decision"],  # APPROVED | REJECTED | conflict
)

# Event delivery
event_handler_failure_counter = Counter(
    "event_handler_failures_total",
    "Event handlers that failed after all attempts",
    ["event", "handler"],
)

# Disbursement webhook
webhook_latency_histogram = Histogram(
    "disbursement_webhook_latency_seconds",
    "Disbursement webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "disbursement_webhook_failures_total",
    "Failed disbursement webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_link(resource: str, created: bool) -> None:
    """Record whether an idempotent create made a new record or found one"""
    account_link_counter.labels(resource=resource, outcome="created" if created else "existing").inc()
