"""
Audit-level exceptions.
"""

from __future__ import annotations


class AuditError(Exception):
    """Base exception for audit workflow failures."""

    failure_code: str = "audit_failed"


class AuditConfigurationError(AuditError):
    """Raised when a run cannot start because input or credentials are missing."""

    failure_code = "missing_configuration"


class MetricsFetchError(AuditError):
    """Raised when the mandatory snapshot for a domain and form factor cannot be used."""

    def __init__(self, message: str, *, domain: str, form_factor: str, failure_code: str) -> None:
        super().__init__(message)
        self.domain = domain
        self.form_factor = form_factor
        self.failure_code = failure_code
