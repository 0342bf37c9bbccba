"""
Domain errors raised by the billing, entitlement and generation services.

Every error carries the HTTP status and a stable machine-readable code so
that ``main.py`` can render them with a single exception handler, while
services stay free of FastAPI imports.
"""

from typing import Optional


class AppError(Exception):
    """Base class for all caller-visible domain errors."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, context: Optional[dict] = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)


class UnauthenticatedError(AppError):
    status_code = 401
    code = "unauthenticated"


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class InsufficientCreditsError(AppError):
    """Balance too low for the requested debit; nothing was charged."""

    status_code = 402
    code = "insufficient_credits"

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient AI credits. You need {required} credits but only have "
            f"{available}. Please upgrade your subscription or purchase more credits.",
            {"required": required, "available": available},
        )


class QuotaExceededError(AppError):
    status_code = 403
    code = "quota_exceeded"


class CapabilityDeniedError(AppError):
    status_code = 403
    code = "capability_denied"


class GenerationFailedError(AppError):
    """Every generation attempt failed; the caller was not charged."""

    status_code = 502
    code = "generation_failed"


class InvalidRequestError(AppError):
    status_code = 400
    code = "invalid_request"
