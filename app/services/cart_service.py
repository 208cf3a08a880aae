# app/services/cart_service.py
import logging
import uuid
from typing import get_args

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import MalformedPersistedStateError, OutOfStockError
from app.models.cart import Cart
from app.models.product import Product
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import (
    DEFAULT_PAYMENT_METHOD,
    CartItemCreate,
    CartItemUpdate,
    CartLineRead,
    CartNotice,
    CartSummary,
    PaymentMethod,
    PaymentMethodUpdate,
    ShippingAddress,
)
from app.services.cart_engine import CartEngine

logger = logging.getLogger(__name__)

settings = get_settings()


def _parse_shipping_address(raw) -> ShippingAddress | None:
    if raw is None:
        return None
    try:
        return ShippingAddress.model_validate(raw)
    except ValidationError as exc:
        raise MalformedPersistedStateError(
            "shipping address", f"{exc.error_count()} validation error(s)"
        ) from exc


def _parse_payment_method(raw) -> PaymentMethod:
    if raw is None:
        return DEFAULT_PAYMENT_METHOD
    if raw not in get_args(PaymentMethod):
        raise MalformedPersistedStateError("payment method", f"unknown value {raw!r}")
    return raw


class CartService:
    """
    Business logic for cart operations.

    Each call hydrates a CartEngine from the user's cart document, applies
    one operation, and commits the serialized lines back only if the
    operation changed something.

    Responsibilities:
      - ensure only 'user' accounts use cart (via router dependency)
      - validate product existence and active flag
      - read the stock ceiling fresh from the catalog on every mutation
      - turn engine outcomes into user-visible notices
    """

    def __init__(self, cart_repo: CartRepository, product_repo: ProductRepository):
        self.cart_repo = cart_repo
        self.product_repo = product_repo

    # ---- internal helpers ----

    def _get_valid_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        if not product.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Product is inactive",
            )
        return product

    @staticmethod
    def new_engine(records=None) -> CartEngine:
        return CartEngine.from_records(
            records,
            tax_rate=settings.TAX_RATE,
            flat_shipping_cost=settings.FLAT_SHIPPING_COST,
            free_shipping_threshold=settings.FREE_SHIPPING_THRESHOLD,
        )

    def load(self, session: Session, user_id: uuid.UUID) -> tuple[Cart, CartEngine]:
        """
        Fetch (or start) the user's cart document and hydrate an engine.
        """
        cart = self.cart_repo.get_or_create(session, user_id)
        return cart, self.new_engine(cart.items)

    def _commit(self, session: Session, cart: Cart, engine: CartEngine) -> None:
        cart.items = engine.to_records()
        self.cart_repo.save(session, cart)

    @staticmethod
    def shipping_address_of(cart: Cart) -> ShippingAddress | None:
        try:
            return _parse_shipping_address(cart.shipping_address)
        except MalformedPersistedStateError as err:
            logger.warning("Ignoring saved shipping address for cart %s: %s", cart.id, err)
            return None

    @staticmethod
    def payment_method_of(cart: Cart) -> PaymentMethod:
        try:
            return _parse_payment_method(cart.payment_method)
        except MalformedPersistedStateError as err:
            logger.warning("Ignoring saved payment method for cart %s: %s", cart.id, err)
            return DEFAULT_PAYMENT_METHOD

    def _summary(
        self,
        cart: Cart,
        engine: CartEngine,
        notice: CartNotice | None = None,
    ) -> CartSummary:
        items = [
            CartLineRead(
                **line.model_dump(),
                line_total=line.unit_price * line.quantity,
            )
            for line in engine.lines
        ]
        totals = engine.totals()
        return CartSummary(
            **totals.model_dump(),
            items=items,
            shipping_address=self.shipping_address_of(cart),
            payment_method=self.payment_method_of(cart),
            notice=notice,
        )

    @staticmethod
    def _out_of_stock_notice(err: OutOfStockError, description: str) -> CartNotice:
        logger.info("Cart change rejected: %s", err)
        return CartNotice(variant="destructive", title="Out of stock", description=description)

    # ---- public operations ----

    def get_cart_summary(self, session: Session, user_id: uuid.UUID) -> CartSummary:
        cart, engine = self.load(session, user_id)
        return self._summary(cart, engine)

    def add_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add one unit of a product to the user's cart.

        Rules:
          - product must exist and be active
          - resulting quantity <= product.stock
          - name/price/image/category are snapshotted on first add
        """
        product = self._get_valid_product(session, payload.product_id)
        cart, engine = self.load(session, user_id)

        try:
            engine.add_line(
                product_id=product.id,
                name=product.name,
                unit_price=product.price,
                stock_ceiling=product.stock,
                image_url=product.image_url,
                category=product.category,
            )
        except OutOfStockError as err:
            notice = self._out_of_stock_notice(
                err, f"Only {err.available} items available in stock."
            )
            return self._summary(cart, engine, notice)

        self._commit(session, cart, engine)
        notice = CartNotice(
            title="Added to cart",
            description=f"{product.name} has been added to your cart.",
        )
        return self._summary(cart, engine, notice)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """
        Set the quantity of a line.

        - quantity < 1 removes the line.
        - a product that is not in the cart is left alone (no error).
        - quantity above the current product.stock is rejected with a notice.
        """
        if payload.quantity < 1:
            return self.remove_item(session, user_id, product_id)

        cart, engine = self.load(session, user_id)
        if engine.get_line(product_id) is None:
            return self._summary(cart, engine)

        # Deleted or deactivated products have nothing left to sell.
        product = self.product_repo.get_by_id(session, product_id)
        if product is None or not product.is_active:
            stock_ceiling = 0
        else:
            stock_ceiling = product.stock

        try:
            engine.update_quantity(product_id, payload.quantity, stock_ceiling)
        except OutOfStockError as err:
            notice = self._out_of_stock_notice(
                err, f"Only {err.available} items available."
            )
            return self._summary(cart, engine, notice)

        self._commit(session, cart, engine)
        return self._summary(cart, engine)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> CartSummary:
        """
        Remove a product from the cart if present, and return updated summary.
        """
        cart, engine = self.load(session, user_id)
        if engine.remove_line(product_id) is not None:
            self._commit(session, cart, engine)

        notice = CartNotice(
            title="Removed from cart",
            description="Item has been removed from your cart.",
        )
        return self._summary(cart, engine, notice)

    def clear_cart(self, session: Session, user_id: uuid.UUID) -> CartSummary:
        """
        Clear all lines from the cart. Checkout details are kept.
        """
        cart, engine = self.load(session, user_id)
        engine.clear()
        self._commit(session, cart, engine)

        notice = CartNotice(
            title="Cart cleared",
            description="All items have been removed from your cart.",
        )
        return self._summary(cart, engine, notice)

    def set_shipping_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: ShippingAddress,
    ) -> CartSummary:
        cart, engine = self.load(session, user_id)
        cart.shipping_address = payload.model_dump()
        self._commit(session, cart, engine)
        return self._summary(cart, engine)

    def set_payment_method(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: PaymentMethodUpdate,
    ) -> CartSummary:
        cart, engine = self.load(session, user_id)
        cart.payment_method = payload.payment_method
        self._commit(session, cart, engine)
        return self._summary(cart, engine)
