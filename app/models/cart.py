# app/models/cart.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Cart(SQLModel, table=True):
    """
    Server-side cart document, one per customer.

    `items` holds the serialized line list exactly as the cart engine
    produced it; it is parsed leniently on load. Checkout details
    (shipping address, payment method) live on the same document.
    """

    __tablename__ = "carts"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        unique=True,
        index=True,
    )

    items: list[Any] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    shipping_address: dict | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )

    payment_method: str | None = None

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
