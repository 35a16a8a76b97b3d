"""Billing error taxonomy.

Every error is an ``HTTPException`` carrying its own status code, so services
can raise them directly and FastAPI renders ``{"detail": message}`` without
per-route translation.
"""
from fastapi import HTTPException, status


class BillingError(HTTPException):
    """Base class for user-facing billing errors."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, headers: dict | None = None):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)


class ValidationError(BillingError):
    """Malformed or out-of-range input (price below minimum, payout floor, ...)."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(BillingError):
    """Missing or invalid bearer credential."""
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class PermissionDeniedError(BillingError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BillingError):
    """Duplicate active subscription, self-subscription, handle collision."""
    status_code = status.HTTP_409_CONFLICT


class InsufficientBalanceError(BillingError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class SignatureError(BillingError):
    """Webhook signature missing or invalid. The request is never processed."""
    status_code = status.HTTP_401_UNAUTHORIZED


class UpstreamError(BillingError):
    """The billing provider rejected or failed a call."""
    status_code = status.HTTP_502_BAD_GATEWAY


class DeliveryError(BillingError):
    """The email provider failed to accept a notification."""
    status_code = status.HTTP_502_BAD_GATEWAY
