"""Prometheus metrics for the staging pipeline.

Defines operational metrics for monitoring and alerting.
"""

from prometheus_client import Counter, Histogram

staging_uploads_total = Counter(
    "regflow_staging_uploads_total",
    "Upload candidates judged by the ingestion validator",
    ["outcome"]  # outcome: accepted|size_exceeded|unsupported_type|invalid_file_name
)

staging_lifecycle_terminal_total = Counter(
    "regflow_staging_lifecycle_terminal_total",
    "Staging records reaching a terminal lifecycle state",
    ["status"]  # status: ready|failed|cancelled
)

staging_confirmations_total = Counter(
    "regflow_staging_confirmations_total",
    "Confirmation transactions by outcome",
    ["outcome"]  # outcome: committed|validation_failed|commit_error
)

staging_confirmed_files_total = Counter(
    "regflow_staging_confirmed_files_total",
    "Staging records moved into the canonical store"
)

suggestion_confidence_histogram = Histogram(
    "regflow_suggestion_confidence",
    "Suggestion engine confidence distribution",
    buckets=[0.5, 0.6, 0.7, 0.8, 0.85, 0.9, 0.95, 1.0]
)
