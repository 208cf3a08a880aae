# app/repositories/cart_repo.py
import uuid
from datetime import datetime, timezone

from sqlmodel import Session, select

from app.models.cart import Cart


class CartRepository:
    """
    Storage for cart documents (one row per customer).

    The repository never interprets `items`; parsing belongs to the
    cart engine.
    """

    def get_for_user(self, session: Session, user_id: uuid.UUID) -> Cart | None:
        stmt = select(Cart).where(Cart.user_id == user_id)
        return session.exec(stmt).first()

    def get_or_create(self, session: Session, user_id: uuid.UUID) -> Cart:
        """
        Return the user's cart document, creating an empty one on first use.
        The new row is not flushed until the first save.
        """
        cart = self.get_for_user(session, user_id)
        if cart is None:
            cart = Cart(user_id=user_id, items=[])
        return cart

    def stage(self, session: Session, cart: Cart) -> Cart:
        """
        Add pending changes to the session without committing.
        Used when the cart is part of a larger transaction (checkout).
        """
        cart.updated_at = datetime.now(timezone.utc)
        session.add(cart)
        return cart

    def save(self, session: Session, cart: Cart) -> Cart:
        self.stage(session, cart)
        session.commit()
        session.refresh(cart)
        return cart
