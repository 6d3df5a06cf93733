"""
Error taxonomy for the report engine and the insight gateway
"""

from typing import Optional


class ReportValidationError(ValueError):
    """Malformed report window or structurally invalid medication/log record"""


class InsightError(Exception):
    """Base class for narrative-generation failures"""

    kind = "upstream_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InsightRateLimitedError(InsightError):
    """Gateway answered 429"""

    kind = "rate_limited"


class InsightPaymentRequiredError(InsightError):
    """Gateway answered 402; credits or quota exhausted"""

    kind = "payment_required"


class InsightUpstreamError(InsightError):
    """Any other gateway failure: non-2xx status, transport error, timeout"""

    kind = "upstream_error"


__all__ = [
    "ReportValidationError",
    "InsightError",
    "InsightRateLimitedError",
    "InsightPaymentRequiredError",
    "InsightUpstreamError",
]
