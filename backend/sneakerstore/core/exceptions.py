"""
Domain exceptions for the cart, checkout and payment flows.

Services translate these into HTTPException at the API boundary; the
storefront client raises them directly to its callers.
"""
from typing import Any, List, Optional

from fastapi import HTTPException, status


class StorefrontError(Exception):
    """Base class for every storefront domain error."""

    def __init__(self, message: str = "Storefront error"):
        self.message = message
        super().__init__(self.message)


# ===============================================
# CART INTEGRITY
# ===============================================

class CartIntegrityError(StorefrontError):
    """A cart mutation is missing a required identity or price."""

    def __init__(self, message: str = "Cart item is missing required data", field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InvalidQuantityError(CartIntegrityError):
    """Quantity must be an integer greater than zero."""

    def __init__(self, quantity: Any):
        self.quantity = quantity
        super().__init__(f"Quantity must be an integer >= 1, got {quantity!r}", field="quantity")


class CartItemNotFoundError(StorefrontError):
    def __init__(self, cart_item_id: str):
        self.cart_item_id = cart_item_id
        super().__init__(f"Item not found in cart: {cart_item_id}")


class SneakerNotFoundError(StorefrontError):
    def __init__(self, sneaker_id: Any):
        self.sneaker_id = sneaker_id
        super().__init__(f"Sneaker not found: {sneaker_id}")


class VariantNotFoundError(StorefrontError):
    def __init__(self, reference: Any):
        self.reference = reference
        super().__init__(f"Variant not found: {reference}")


# ===============================================
# AVAILABILITY & CHECKOUT
# ===============================================

class AvailabilityError(StorefrontError):
    """One or more cart lines failed live stock validation."""

    def __init__(self, report):
        self.report = report
        names = ", ".join(line.cart_item_id for line in report.unavailable_items)
        super().__init__(f"Items unavailable: {names}")


class CheckoutBlockedError(StorefrontError):
    """Checkout cannot progress to the requested step."""

    def __init__(self, message: str, reasons: Optional[List[str]] = None, report=None):
        self.reasons = reasons or []
        self.report = report
        super().__init__(message)


class InvalidStatusTransitionError(StorefrontError):
    def __init__(self, current_status: str, new_status: str, message: Optional[str] = None):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(message or f"Cannot transition from '{current_status}' to '{new_status}'")


# ===============================================
# PAYMENT
# ===============================================

class PaymentError(StorefrontError):
    """
    Adapter-specific payment failure (card decline, QR generation failure,
    gateway timeout). Never retried automatically; `retryable` tells the
    caller whether offering a retry/regenerate action makes sense.
    """

    def __init__(self, method: str, message: str, retryable: bool = True, status_detail: Optional[str] = None):
        self.method = method
        self.retryable = retryable
        self.status_detail = status_detail
        super().__init__(message)


# ===============================================
# CLIENT / SYNCHRONIZATION
# ===============================================

class TransientIOError(StorefrontError):
    """A network call to the storefront API failed before a response arrived."""


class ApiError(StorefrontError):
    """The storefront API answered with a non-success status."""

    def __init__(self, status_code: int, message: str, payload: Optional[dict] = None):
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(message)


class CartSyncError(StorefrontError):
    """Merge-on-login could not transfer any local item to the server cart."""

    def __init__(self, message: str, failed_items: Optional[list] = None):
        self.failed_items = failed_items or []
        super().__init__(message)


class RequestInFlightError(StorefrontError):
    """A paginated fetch was requested while the previous page is still loading."""


# ===============================================
# HTTP BOUNDARY
# ===============================================

def to_http_exception(error: StorefrontError) -> HTTPException:
    """Translate a domain error into the HTTPException the API answers with."""
    if isinstance(error, AvailabilityError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": error.message,
                "report": error.report.model_dump(mode="json")
            }
        )

    if isinstance(error, CheckoutBlockedError):
        detail = {"message": error.message, "reasons": error.reasons}
        if error.report is not None:
            detail["report"] = error.report.model_dump(mode="json")
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    if isinstance(error, (CartItemNotFoundError, SneakerNotFoundError, VariantNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)

    if isinstance(error, PaymentError):
        return HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "message": error.message,
                "method": error.method,
                "retryable": error.retryable,
                "status_detail": error.status_detail
            }
        )

    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)
