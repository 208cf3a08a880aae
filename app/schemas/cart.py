# app/schemas/cart.py
import uuid
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

PaymentMethod = Literal["card", "paypal", "cash_on_delivery"]
NoticeVariant = Literal["default", "destructive"]

DEFAULT_PAYMENT_METHOD: PaymentMethod = "card"


class CartLine(SQLModel):
    """
    One distinct product held in the cart.

    Display/pricing fields are a snapshot taken when the product was first
    added. `stock_ceiling` is the last catalog stock seen by a mutation.
    """

    product_id: uuid.UUID
    name: str
    unit_price: float = Field(ge=0)
    image_url: str | None = None
    category: str | None = None
    quantity: int = Field(ge=1)
    stock_ceiling: int = Field(ge=0)


class CartTotals(SQLModel):
    """
    Values derived from the cart lines. Never stored.
    """

    total_item_count: int
    subtotal: float
    tax: float
    shipping_cost: float
    grand_total: float
    qualifies_for_free_shipping: bool


class ShippingAddress(SQLModel):
    """
    Delivery address saved on the cart and copied onto orders.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str
    address: str
    city: str
    postal_code: str
    country: str
    phone: str

    @field_validator("full_name", "address", "city", "postal_code", "country", "phone")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class CartNotice(SQLModel):
    """
    User-visible notification describing the outcome of a cart operation.
    """

    variant: NoticeVariant = "default"
    title: str
    description: str


class CartItemCreate(SQLModel):
    """
    Payload for adding one unit of a product to the cart.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart line.

    Values below 1 remove the line.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int


class PaymentMethodUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    payment_method: PaymentMethod


class CartLineRead(CartLine):
    """
    Read model for a single cart line, including line_total.
    """

    line_total: float


class CartSummary(CartTotals):
    """
    Full cart response model with totals, checkout details and the
    notification for the operation that produced it.
    """

    items: list[CartLineRead]
    shipping_address: ShippingAddress | None = None
    payment_method: PaymentMethod = DEFAULT_PAYMENT_METHOD
    notice: CartNotice | None = None
