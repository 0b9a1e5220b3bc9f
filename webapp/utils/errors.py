"""
Error types raised by the cart/order layer.

Routes catch these at the boundary and turn them into HTTP responses or a
failed payment outcome; they never reach a global handler.
"""
from typing import List, Optional


class StorefrontError(Exception):
    """
    Base exception for storefront errors.

    Attributes:
        message: Human-readable error message, safe to show to the user
        details: Optional dict with additional context (order id, reference...)
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class CheckoutValidationError(StorefrontError):
    """Raised before any network call when local input is incomplete."""


class RequestAbandonedError(StorefrontError):
    """Raised when a backend result arrives after its request scope closed."""

    def __init__(self):
        super().__init__("Request was abandoned before the backend responded")


class BackendError(StorefrontError):
    """Backend reported a failure (non-success body or HTTP error)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[str]] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.errors = errors or []


class BackendUnavailableError(BackendError):
    """Backend could not be reached or returned an unusable response."""


class OrderCreationError(BackendError):
    pass


class OrderStatusUpdateError(BackendError):
    pass


class PaymentInitializationError(BackendError):
    pass


class PaymentVerificationError(BackendError):
    pass


class VerificationEndpointMissingError(PaymentVerificationError):
    """The backend has no verification route (HTTP 404); a support issue, not a failed payment."""

    def __init__(self, details: Optional[dict] = None):
        super().__init__(
            "Vendor payment verification endpoint not found. Please contact support.",
            status_code=404,
            details=details,
        )


class MissingPaymentReferenceError(PaymentVerificationError):
    """Gateway redirect carried neither `reference` nor `trxref`."""

    def __init__(self):
        super().__init__("No payment reference found")
