# app/services/cart_engine.py
"""
In-memory cart state and pricing.

`CartEngine` owns an ordered collection of `CartLine`s keyed by product id.
It is pure: callers hand in the current stock ceiling on every mutating call,
and persist `to_records()` themselves after a successful mutation.

Invariants kept after every operation:
  - one line per product_id, stable insertion order
  - 1 <= quantity <= stock_ceiling for every line
  - a rejected mutation leaves the cart exactly as it was

Reads and mutations hand back copies of lines; the stored lines change only
through the mutation methods.
"""
import logging
import uuid
from typing import Any

from pydantic import ValidationError

from app.core.errors import MalformedPersistedStateError, OutOfStockError
from app.schemas.cart import CartLine, CartTotals

logger = logging.getLogger(__name__)

TAX_RATE = 0.08
FLAT_SHIPPING_COST = 10.0
FREE_SHIPPING_THRESHOLD = 150.0


def _check_stock_ceiling(stock_ceiling: Any) -> int:
    # bool is an int subclass; a True ceiling is a caller bug, not "1".
    if isinstance(stock_ceiling, bool) or not isinstance(stock_ceiling, int):
        raise ValueError("stock_ceiling must be an integer")
    if stock_ceiling < 0:
        raise ValueError("stock_ceiling must be non-negative")
    return stock_ceiling


def _check_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValueError("quantity must be an integer")
    return quantity


class CartEngine:
    """
    Explicit cart state object.

    Mutations:
      - add_line         : insert or +1, bounded by the stock ceiling
      - update_quantity  : set quantity; < 1 removes; absent line is a no-op
      - remove_line      : delete if present
      - clear            : empty the cart

    Reads:
      - lines / get_line
      - totals()         : recomputed on every call
      - to_records()     : flat list handed to the persistence layer
    """

    def __init__(
        self,
        lines: list[CartLine] | None = None,
        *,
        tax_rate: float = TAX_RATE,
        flat_shipping_cost: float = FLAT_SHIPPING_COST,
        free_shipping_threshold: float = FREE_SHIPPING_THRESHOLD,
    ):
        self.tax_rate = tax_rate
        self.flat_shipping_cost = flat_shipping_cost
        self.free_shipping_threshold = free_shipping_threshold

        self._lines: dict[uuid.UUID, CartLine] = {}
        for line in lines or []:
            if line.product_id in self._lines:
                raise ValueError(f"duplicate cart line for product {line.product_id}")
            if line.quantity > line.stock_ceiling:
                raise ValueError(
                    f"quantity {line.quantity} exceeds stock ceiling "
                    f"{line.stock_ceiling} for product {line.product_id}"
                )
            self._lines[line.product_id] = line.model_copy()

    # ---- reads ----

    @property
    def lines(self) -> list[CartLine]:
        return [line.model_copy() for line in self._lines.values()]

    def get_line(self, product_id: uuid.UUID) -> CartLine | None:
        line = self._lines.get(product_id)
        return line.model_copy() if line is not None else None

    def is_empty(self) -> bool:
        return not self._lines

    def totals(self) -> CartTotals:
        """
        Derive item count, subtotal, tax, shipping and grand total.

        An empty cart has nothing to ship, so its shipping cost is 0.
        """
        total_item_count = 0
        subtotal = 0.0
        for line in self._lines.values():
            total_item_count += line.quantity
            subtotal += line.unit_price * line.quantity

        qualifies = subtotal >= self.free_shipping_threshold
        if qualifies or not self._lines:
            shipping_cost = 0.0
        else:
            shipping_cost = self.flat_shipping_cost

        tax = subtotal * self.tax_rate

        return CartTotals(
            total_item_count=total_item_count,
            subtotal=subtotal,
            tax=tax,
            shipping_cost=shipping_cost,
            grand_total=subtotal + tax + shipping_cost,
            qualifies_for_free_shipping=qualifies,
        )

    # ---- mutations ----

    def add_line(
        self,
        *,
        product_id: uuid.UUID,
        name: str,
        unit_price: float,
        stock_ceiling: int,
        image_url: str | None = None,
        category: str | None = None,
    ) -> CartLine:
        """
        Add one unit of a product.

        Raises:
            ValueError: stock_ceiling is not a non-negative integer.
            OutOfStockError: the line is already at the ceiling, or the
                product has no stock at all.
        """
        stock_ceiling = _check_stock_ceiling(stock_ceiling)
        existing = self._lines.get(product_id)

        if existing is not None:
            if existing.quantity >= stock_ceiling:
                raise OutOfStockError(
                    product_id,
                    available=stock_ceiling,
                    requested=existing.quantity + 1,
                )
            existing.quantity += 1
            existing.stock_ceiling = stock_ceiling
            return existing.model_copy()

        if stock_ceiling < 1:
            raise OutOfStockError(product_id, available=stock_ceiling, requested=1)

        line = CartLine(
            product_id=product_id,
            name=name,
            unit_price=unit_price,
            image_url=image_url,
            category=category,
            quantity=1,
            stock_ceiling=stock_ceiling,
        )
        self._lines[product_id] = line
        return line.model_copy()

    def update_quantity(
        self,
        product_id: uuid.UUID,
        new_quantity: int,
        stock_ceiling: int | None = None,
    ) -> CartLine | None:
        """
        Set the quantity of a line.

        `stock_ceiling` is the fresh catalog value when the caller has one;
        otherwise the ceiling stored on the line applies.

        Returns the updated line, or None when the line was removed or
        did not exist.

        Raises:
            ValueError: new_quantity or stock_ceiling is not an integer.
            OutOfStockError: new_quantity is above the ceiling.
        """
        new_quantity = _check_quantity(new_quantity)
        if new_quantity < 1:
            self.remove_line(product_id)
            return None

        line = self._lines.get(product_id)
        if line is None:
            return None

        if stock_ceiling is None:
            ceiling = line.stock_ceiling
        else:
            ceiling = _check_stock_ceiling(stock_ceiling)

        if new_quantity > ceiling:
            raise OutOfStockError(product_id, available=ceiling, requested=new_quantity)

        line.quantity = new_quantity
        line.stock_ceiling = ceiling
        return line.model_copy()

    def remove_line(self, product_id: uuid.UUID) -> CartLine | None:
        return self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    # ---- persistence ----

    def to_records(self) -> list[dict[str, Any]]:
        """
        Serialize lines to a flat, ordered, JSON-ready list of dicts.
        """
        return [line.model_dump(mode="json") for line in self._lines.values()]

    @classmethod
    def from_records(cls, records: Any, **pricing: float) -> "CartEngine":
        """
        Hydrate an engine from whatever the persistence layer last stored.

        Records that fail to parse are dropped individually; a payload that
        is not a list at all hydrates an empty cart. Nothing here raises.
        """
        engine = cls(**pricing)

        if records is None:
            return engine

        if not isinstance(records, list):
            err = MalformedPersistedStateError(
                "cart", f"expected a list of lines, got {type(records).__name__}"
            )
            logger.warning("Discarding persisted cart: %s", err)
            return engine

        for index, record in enumerate(records):
            try:
                line = engine._parse_record(record)
            except MalformedPersistedStateError as err:
                logger.warning("Discarding persisted cart line #%d: %s", index, err)
                continue
            engine._lines[line.product_id] = line

        return engine

    def _parse_record(self, record: Any) -> CartLine:
        try:
            line = CartLine.model_validate(record)
        except ValidationError as exc:
            raise MalformedPersistedStateError(
                "cart line", f"{exc.error_count()} validation error(s)"
            ) from exc

        if line.quantity > line.stock_ceiling:
            raise MalformedPersistedStateError(
                "cart line",
                f"quantity {line.quantity} exceeds stock ceiling {line.stock_ceiling}",
            )
        if line.product_id in self._lines:
            raise MalformedPersistedStateError(
                "cart line", f"duplicate product {line.product_id}"
            )
        return line
