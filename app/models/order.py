# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order, created from the cart at checkout.

    Prices are copied from the cart totals at the moment of checkout:
      - items_price    : subtotal
      - tax_price      : subtotal * tax rate
      - shipping_price : flat cost, or 0 above the free-shipping threshold
      - total_price    : sum of the three
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # Shipping address snapshot
    shipping_full_name: str
    shipping_address: str
    shipping_city: str
    shipping_postal_code: str
    shipping_country: str
    shipping_phone: str

    payment_method: str = Field(default="card")

    # Payment provider result, filled in when the order is paid
    payment_id: str | None = None
    payment_status: str | None = None
    payment_update_time: str | None = None
    payment_email_address: str | None = None

    items_price: float = Field(default=0.0, ge=0)
    tax_price: float = Field(default=0.0, ge=0)
    shipping_price: float = Field(default=0.0, ge=0)
    total_price: float = Field(default=0.0, ge=0)

    is_paid: bool = Field(default=False)
    paid_at: datetime | None = None

    is_delivered: bool = Field(default=False)
    delivered_at: datetime | None = None

    # pending | processing | shipped | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )
    shipped_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order, snapshotted from the cart line.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    name: str
    image_url: str | None = None

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    # Pre-tax price at time of order
    unit_price: float = Field(
        description="Unit price at time of order (pre-tax)",
    )
