"""
Typed errors raised by the service layer.

Every error is recoverable by the caller. The HTTP layer maps ``status_code``
and ``code`` onto the response body (see ``exception_handlers``).
"""


class DomainError(Exception):
    code = "domain_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(DomainError):
    """Entity does not exist, or belongs to another tenant."""
    code = "not_found"
    status_code = 404


class ValidationFailed(DomainError):
    code = "validation_failed"
    status_code = 400


class InsufficientStock(DomainError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id, requested: int, available: int, max_order_quantity: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.max_order_quantity = max_order_quantity
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Requested: {requested}, Available: {available}, Max per order: {max_order_quantity}"
        )


class StoreUnavailable(DomainError):
    code = "store_unavailable"
    status_code = 409


class InvalidTransition(DomainError):
    code = "invalid_transition"
    status_code = 409


class AlreadyAssigned(DomainError):
    code = "already_assigned"
    status_code = 409


class OutOfServiceArea(DomainError):
    code = "out_of_service_area"
    status_code = 422


class AccessDenied(DomainError):
    code = "access_denied"
    status_code = 403
