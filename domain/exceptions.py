"""
Domain Exceptions

Every business-rule violation raised by the domain and application layers is a
``BookingPlatformError``. They subclass ``ValueError`` so callers that only care
about "the request was rejected" can keep catching ``ValueError``.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes returned to API clients"""
    # General
    INVALID_REQUEST = "INVALID_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Inventory and booking
    UNIT_UNAVAILABLE = "UNIT_UNAVAILABLE"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

    # Payments and payouts
    PAYMENT_VERIFICATION_FAILED = "PAYMENT_VERIFICATION_FAILED"
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"

    # External services
    PUSH_DELIVERY_FAILED = "PUSH_DELIVERY_FAILED"


class BookingPlatformError(ValueError):
    """Base exception carrying structured error information"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INVALID_REQUEST,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the API error body"""
        return {
            "detail": self.message,
            "error_code": self.error_code.value,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


class ValidationFailedError(BookingPlatformError):
    """Input is well-formed but breaks a business rule"""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None,
                 error_code: ErrorCode = ErrorCode.VALIDATION_ERROR):
        super().__init__(message, error_code, details, 422)


class ResourceNotFoundError(BookingPlatformError):
    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} not found",
            ErrorCode.RESOURCE_NOT_FOUND,
            {"resource": resource, "id": str(resource_id)},
            404
        )


class UnitUnavailableError(BookingPlatformError):
    """The bed or seat is occupied, blocked, or booked for an overlapping period"""

    def __init__(self, message: str = "The selected unit is not available", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.UNIT_UNAVAILABLE, details, 409)


class InvalidStateTransitionError(BookingPlatformError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INVALID_STATE_TRANSITION, details, 409)


class ConcurrencyConflictError(BookingPlatformError):
    """Raised when a write carries a stale version"""

    def __init__(self, entity: str, entity_id: Any, expected_version: int, actual_version: int):
        super().__init__(
            f"{entity} was modified by another request, reload and retry",
            ErrorCode.CONCURRENT_MODIFICATION,
            {
                "entity": entity,
                "id": str(entity_id),
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
            409
        )


class PaymentVerificationError(BookingPlatformError):
    """Signature mismatch on a gateway callback"""

    def __init__(self, payment_id: Optional[str] = None, order_id: Optional[str] = None):
        super().__init__(
            "Your payment was successful but we couldn't verify it. "
            "Please contact support with your payment reference.",
            ErrorCode.PAYMENT_VERIFICATION_FAILED,
            {"payment_id": payment_id, "order_id": order_id},
            400
        )


class PaymentGatewayError(BookingPlatformError):
    def __init__(self, message: str = "Payment gateway is not configured"):
        super().__init__(message, ErrorCode.PAYMENT_GATEWAY_ERROR, None, 503)


class InsufficientBalanceError(BookingPlatformError):
    def __init__(self, requested, available):
        super().__init__(
            "Requested amount exceeds available balance",
            ErrorCode.INSUFFICIENT_BALANCE,
            {"requested": str(requested), "available": str(available)},
            400
        )


class PermissionDeniedError(BookingPlatformError):
    def __init__(self, message: str = "Not enough permissions"):
        super().__init__(message, ErrorCode.INSUFFICIENT_PERMISSIONS, None, 403)


class PushDeliveryError(BookingPlatformError):
    def __init__(self, message: str = "Push notification delivery failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.PUSH_DELIVERY_FAILED, details, 502)
