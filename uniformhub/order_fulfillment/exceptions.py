"""
Custom exceptions for the uniform order workflow.

Every error carries a stable ``code`` and a ``retryable`` flag; views map
the class to an HTTP status and the caller decides whether to re-fetch
state or retry.
"""

from typing import Dict, Any


class BusinessException(Exception):
    """Base exception for business logic errors."""

    http_status = 400
    retryable = False

    def __init__(self, message: str, code: str = "BUSINESS_ERROR", details: Dict[str, Any] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(BusinessException):
    """Raised when data validation fails."""

    def __init__(self, message: str, field_errors: Dict[str, Any] = None):
        super().__init__(message, "VALIDATION_ERROR", field_errors or {})


class NoEligibleVendorException(ValidationException):
    """Raised when a cart line has no vendor supplying it for the employee's company."""

    def __init__(self, order_number: str, product_codes):
        super().__init__(
            f"No eligible vendor for products {', '.join(product_codes)} in order {order_number}",
            {"order_number": order_number, "product_codes": list(product_codes)},
        )
        self.code = "NO_ELIGIBLE_VENDOR"


class StateConflictException(BusinessException):
    """The entity is not in the state the operation requires; re-fetch before retrying."""

    http_status = 409

    def __init__(self, message: str, code: str = "STATE_CONFLICT", details: Dict[str, Any] = None):
        super().__init__(message, code, details)


class InvalidTransitionException(StateConflictException):
    """Raised when attempting an invalid workflow transition."""

    def __init__(self, current_status: str, attempted_status: str, entity_type: str = "order"):
        message = f"Invalid transition for {entity_type}: cannot move from {current_status} to {attempted_status}"
        super().__init__(message, "INVALID_TRANSITION", {
            "current_status": current_status,
            "attempted_status": attempted_status,
            "entity_type": entity_type
        })


class StaleApprovalException(StateConflictException):
    """Raised when an approval targets a state the order has already left."""

    def __init__(self, order_number: str, expected_status: str, current_status: str, reason: str = ""):
        message = f"Order {order_number} is no longer in {expected_status} (now {current_status})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "STALE_APPROVAL", {
            "order_number": order_number,
            "expected_status": expected_status,
            "current_status": current_status,
        })


class ApprovalScopeException(BusinessException):
    """Raised when the actor may not act on this order at its current gate."""

    http_status = 403

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "APPROVAL_SCOPE", details)


class IdentityRepresentationError(BusinessException):
    """A cross-entity reference was not in its canonical business-identifier form."""

    http_status = 500

    def __init__(self, field: str, value: Any):
        super().__init__(
            f"{field} must be a non-empty business identifier string, got {type(value).__name__}",
            "IDENTITY_REPRESENTATION",
            {"field": field, "type": type(value).__name__},
        )
