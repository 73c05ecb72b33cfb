"""
Order and stock exceptions.

Exception Hierarchy:
    OrderError (base)
    ├── OrderNotFoundError - Order lookup failures (or not owned by caller)
    ├── CartEmptyError - Checkout with an empty cart
    ├── ProductUnavailableError - Inactive product in the cart
    ├── StockExhaustedError - Not enough stock at checkout or confirmation
    └── OrderStateError - Illegal order status change

Usage:
    from commerce.exceptions import StockExhaustedError

    try:
        OrderService.confirm_payment(order.id)
    except StockExhaustedError as e:
        logger.warning(f"Order {order.id} could not be confirmed: {e.details}")
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class OrderError(BaseApplicationError):
    """Base exception for order operations."""

    default_error_code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError, NotFoundError):
    default_error_code: str = "ORDER_NOT_FOUND"


class CartEmptyError(OrderError, ValidationError):
    default_error_code: str = "CART_EMPTY"


class ProductUnavailableError(OrderError, ValidationError):
    """
    Raised when a cart line refers to a product that is no longer active.

    ``details["items"]`` lists every offending line.
    """

    default_error_code: str = "PRODUCT_UNAVAILABLE"


class StockExhaustedError(OrderError, ConflictError):
    """
    Raised when live stock cannot cover the requested quantities.

    ``details["items"]`` lists product id, requested and available
    quantities for every short line.
    """

    default_error_code: str = "STOCK_EXHAUSTED"


class OrderStateError(OrderError, ConflictError):
    default_error_code: str = "ORDER_STATE_ERROR"


__all__ = [
    "CartEmptyError",
    "OrderError",
    "OrderNotFoundError",
    "OrderStateError",
    "ProductUnavailableError",
    "StockExhaustedError",
]
