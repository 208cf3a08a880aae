# app/core/errors.py
"""
Domain errors raised by the cart engine.

These carry no HTTP knowledge; the service layer decides how they surface.
"""
import uuid


class CartError(Exception):
    """Base class for cart engine errors."""


class OutOfStockError(CartError):
    """
    A requested add/update would push a line past its stock ceiling.

    The cart is left exactly as it was before the call.
    """

    def __init__(self, product_id: uuid.UUID, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Only {available} items available in stock "
            f"(requested {requested}) for product {product_id}"
        )


class MalformedPersistedStateError(CartError):
    """
    A piece of persisted cart state could not be parsed on hydration.

    Hydration catches this, logs it, and treats the piece as absent.
    """

    def __init__(self, part: str, reason: str):
        self.part = part
        self.reason = reason
        super().__init__(f"Malformed persisted {part}: {reason}")
