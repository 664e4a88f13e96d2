"""Domain-level exceptions for pet reports."""

from __future__ import annotations


class ReportError(Exception):
    """Base class for report errors."""

    reason: str = "unknown"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class ReportNotFound(ReportError):
    reason = "report_not_found"


class ReportForbidden(ReportError):
    reason = "forbidden"


class ReportInvalid(ReportError):
    reason = "invalid_report"
