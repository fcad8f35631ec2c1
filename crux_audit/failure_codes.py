"""Shared failure code constants for audit error handling."""

CRITICAL_FAILURES = [
    "missing_configuration",
    "snapshot_fetch_failed",
    "missing_metrics",
]

OPTIONAL_FAILURES = [
    "history_fetch_failed",
    "narrative_generation_failed",
]
