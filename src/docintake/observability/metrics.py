"""Prometheus metrics for docintake.

Counters and histograms for the intake chain. The validation execution
table remains the per-attempt audit trail; these are the aggregate view.
"""

from prometheus_client import Counter, Histogram

documents_ingested_total = Counter(
    "docintake_documents_ingested_total",
    "Total inbound documents stored",
    ["provider", "routing"]  # routing: rule|fallback
)

correlations_total = Counter(
    "docintake_correlations_total",
    "Request correlation outcomes",
    ["outcome"]  # outcome: unlinked|single|ambiguous
)

request_transitions_total = Counter(
    "docintake_request_transitions_total",
    "Document request status transitions",
    ["from_status", "to_status"]
)

validations_total = Counter(
    "docintake_validations_total",
    "Completed validations by verdict",
    ["verdict", "trigger"]
)

validation_duration_seconds = Histogram(
    "docintake_validation_duration_seconds",
    "Time spent running the validation pipeline in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

classification_calls_total = Counter(
    "docintake_classification_calls_total",
    "Classification provider calls",
    ["provider", "status"]  # status: succeeded|timeout|rate_limited|auth_error|error|invalid
)

queue_attempts_total = Counter(
    "docintake_queue_attempts_total",
    "Validation queue attempts by outcome",
    ["outcome"]  # outcome: succeeded|retry|dead_lettered|failed
)

dead_lettered_total = Counter(
    "docintake_dead_lettered_total",
    "Validation jobs moved to the dead-letter store"
)

reminders_sent_total = Counter(
    "docintake_reminders_sent_total",
    "Renewal reminders by outcome",
    ["reminder_type", "status"]  # status: sent|failed
)
