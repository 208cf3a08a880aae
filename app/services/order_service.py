# app/services/order_service.py
import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from app.models.order import Order, OrderItem
from app.models.product import Product
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import ShippingAddress
from app.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
    PaymentResult,
)
from app.services.cart_service import CartService

logger = logging.getLogger(__name__)

# pending   -> processing, cancelled
# processing-> shipped, cancelled
# shipped   -> delivered
# delivered -> (terminal)
# cancelled -> (terminal)
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create order from cart, priced by the cart engine
      - Validate cart lines against the catalog (exists, active, stock)
      - Deduct stock and clear the cart in the same transaction
      - Record payment results
      - Enforce status transitions (admin)
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        cart_service: CartService,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.cart_service = cart_service

    # -------- User-facing operations --------

    def create_order_from_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: OrderCreate,
    ) -> OrderWithItemsRead:
        """
        Convert the current user's cart into an Order.

        Steps:
          1. Load cart; error if empty.
          2. Resolve shipping address and payment method (payload, then cart).
          3. For each line (row locked): product exists, is active,
             quantity <= stock.
          4. Price the cart with the engine.
          5. Create Order (status='pending') and OrderItem rows.
          6. Deduct product stock.
          7. Clear the cart lines.
          8. Commit once and return the full order.
        """
        # 1) Load cart
        cart, engine = self.cart_service.load(session, user_id)
        if engine.is_empty():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty",
            )

        # 2) Checkout details
        address = payload.shipping_address or self.cart_service.shipping_address_of(cart)
        if address is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Shipping address is required",
            )
        payment_method = payload.payment_method or self.cart_service.payment_method_of(cart)

        # 3) Validate each line vs catalog
        errors: list[dict[str, str]] = []
        product_map: dict[uuid.UUID, Product] = {}

        for line in engine.lines:
            product = self.product_repo.get_for_update(session, line.product_id)

            if not product:
                errors.append(
                    {
                        "product_id": str(line.product_id),
                        "reason": "Product not found",
                    }
                )
                continue

            if not product.is_active:
                errors.append(
                    {
                        "product_id": str(line.product_id),
                        "reason": "Product is inactive",
                    }
                )
                continue

            if line.quantity > product.stock:
                errors.append(
                    {
                        "product_id": str(line.product_id),
                        "reason": f"Not enough stock for {product.name} "
                        f"(have {product.stock}, requested {line.quantity})",
                    }
                )
                continue

            product_map[line.product_id] = product

        if errors:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "Cart validation failed", "items": errors},
            )

        # 4) Price
        totals = engine.totals()

        # 5) Order + items
        order = Order(
            user_id=user_id,
            shipping_full_name=address.full_name,
            shipping_address=address.address,
            shipping_city=address.city,
            shipping_postal_code=address.postal_code,
            shipping_country=address.country,
            shipping_phone=address.phone,
            payment_method=payment_method,
            items_price=totals.subtotal,
            tax_price=totals.tax,
            shipping_price=totals.shipping_cost,
            total_price=totals.grand_total,
            status="pending",
        )
        order = self.order_repo.add(session, order)

        order_items = self.order_repo.add_items(
            session,
            [
                OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    name=line.name,
                    image_url=line.image_url,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in engine.lines
            ],
        )

        # 6) Deduct stock
        for line in engine.lines:
            product = product_map[line.product_id]
            product.stock -= line.quantity
            if product.stock < 0:
                session.rollback()
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Internal stock calculation error",
                )
            session.add(product)

        # 7) Clear cart lines; checkout details stay for next time
        engine.clear()
        cart.items = engine.to_records()
        self.cart_repo.stage(session, cart)

        # 8) Commit transaction
        session.commit()
        session.refresh(order)
        for item in order_items:
            session.refresh(item)

        logger.info(
            "Order %s placed by user %s: %d item(s), total %.2f",
            order.id,
            user_id,
            totals.total_item_count,
            order.total_price,
        )
        return self._build_order_with_items_dto(order, order_items)

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        """
        List orders for the given user (without items).
        """
        orders = self.order_repo.list_for_user(session, user_id, skip, limit)
        return [self._build_order_dto(o) for o in orders]

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order for the user, including items.

        - 404 if order not found or does not belong to this user.
        """
        order = self._get_owned_order(session, user_id, order_id)
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    def pay_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
        payload: PaymentResult,
    ) -> OrderRead:
        """
        Record the payment provider's result on the user's order.

        - 400 if already paid or cancelled.
        """
        order = self._get_owned_order(session, user_id, order_id)

        if order.is_paid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order is already paid",
            )
        if order.status == "cancelled":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cancelled orders cannot be paid",
            )

        order.is_paid = True
        order.paid_at = datetime.now(timezone.utc)
        order.payment_id = payload.payment_id
        order.payment_status = payload.status
        order.payment_update_time = payload.update_time
        order.payment_email_address = payload.email_address

        self.order_repo.add(session, order)
        session.commit()
        session.refresh(order)
        return self._build_order_dto(order)

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        order_status: str | None = None,
    ) -> list[OrderRead]:
        """
        List all orders (admin only).
        """
        orders = self.order_repo.list_all(session, skip, limit, status=order_status)
        return [self._build_order_dto(o) for o in orders]

    def get_order_admin(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get any order with items (admin only).
        """
        order = self._get_order(session, order_id)
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Admin-only status update, see ALLOWED_TRANSITIONS.

        Any invalid transition raises 400. Same-status updates are no-ops.
        """
        order = self._get_order(session, order_id)

        current = order.status
        new = payload.status

        if current == new:
            return self._build_order_dto(order)

        if new not in ALLOWED_TRANSITIONS.get(current, set()):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status transition: {current} -> {new}",
            )

        now = datetime.now(timezone.utc)
        order.status = new
        if new == "shipped":
            order.shipped_at = now
        elif new == "delivered":
            order.is_delivered = True
            order.delivered_at = now

        self.order_repo.add(session, order)
        session.commit()
        session.refresh(order)
        return self._build_order_dto(order)

    def mark_delivered(self, session: Session, order_id: uuid.UUID) -> OrderRead:
        """
        Shortcut for the 'delivered' transition (admin only).
        """
        return self.update_status(
            session, order_id, OrderStatusUpdate(status="delivered")
        )

    # -------- Helpers --------

    def _get_order(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def _get_owned_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    @staticmethod
    def _order_fields(order: Order) -> dict:
        return dict(
            id=order.id,
            user_id=order.user_id,
            shipping_address=ShippingAddress(
                full_name=order.shipping_full_name,
                address=order.shipping_address,
                city=order.shipping_city,
                postal_code=order.shipping_postal_code,
                country=order.shipping_country,
                phone=order.shipping_phone,
            ),
            payment_method=order.payment_method,
            items_price=order.items_price,
            tax_price=order.tax_price,
            shipping_price=order.shipping_price,
            total_price=order.total_price,
            is_paid=order.is_paid,
            paid_at=order.paid_at,
            is_delivered=order.is_delivered,
            delivered_at=order.delivered_at,
            status=order.status,  # Literal
            shipped_at=order.shipped_at,
            created_at=order.created_at,
        )

    def _build_order_dto(self, order: Order) -> OrderRead:
        return OrderRead(**self._order_fields(order))

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM models.
        """
        item_dtos = [
            OrderItemRead(
                id=it.id,
                order_id=it.order_id,
                product_id=it.product_id,
                name=it.name,
                image_url=it.image_url,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_total=it.quantity * it.unit_price,
            )
            for it in items
        ]
        return OrderWithItemsRead(**self._order_fields(order), items=item_dtos)
