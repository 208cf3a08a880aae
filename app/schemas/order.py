# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

from app.schemas.cart import PaymentMethod, ShippingAddress

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


class OrderCreate(SQLModel):
    """
    Payload for creating an order from the current cart.

    User provides (optional, falls back to what is saved on the cart):
      - shipping_address
      - payment_method

    Backend derives:
      - user_id from token
      - status = 'pending'
      - items and all prices from the cart
    """

    model_config = ConfigDict(extra="forbid")

    shipping_address: ShippingAddress | None = None
    payment_method: PaymentMethod | None = None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID
    shipping_address: ShippingAddress
    payment_method: str
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    is_paid: bool
    paid_at: datetime | None
    is_delivered: bool
    delivered_at: datetime | None
    status: OrderStatus
    shipped_at: datetime | None
    created_at: datetime


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    name: str
    image_url: str | None
    quantity: int
    unit_price: float
    line_total: float


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus


class PaymentResult(SQLModel):
    """
    Result reported by the payment provider when an order is paid.
    """

    model_config = ConfigDict(extra="forbid")

    payment_id: str
    status: str
    update_time: str | None = None
    email_address: str | None = None

    @field_validator("payment_id", "status")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v
