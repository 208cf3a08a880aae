"""
Component tests for the cart endpoints: router -> service -> engine ->
cart document, with a real (in-memory) database.
"""
import logging
import uuid

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, select

from app.models.cart import Cart

CART_URL = "/api/v1/cart"


class TestCartAccess:
    def test_guest_is_rejected(self, client: TestClient):
        response = client.get(CART_URL)

        assert response.status_code == 401

    def test_admin_is_forbidden(self, client: TestClient, admin_headers):
        response = client.get(CART_URL, headers=admin_headers)

        assert response.status_code == 403

    def test_bad_token_is_rejected(self, client: TestClient):
        response = client.get(CART_URL, headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_token_without_email_is_rejected(self, client: TestClient):
        token = jwt.encode({"sub": str(uuid.uuid4())}, "test-secret", algorithm="HS256")

        response = client.get(CART_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Token missing sub/email"

    def test_new_customer_gets_empty_cart(self, client: TestClient, customer_headers):
        response = client.get(CART_URL, headers=customer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["total_item_count"] == 0
        assert data["grand_total"] == 0
        assert data["payment_method"] == "card"
        assert data["shipping_address"] is None
        assert data["notice"] is None


class TestAddToCart:
    def test_add_product_snapshots_catalog_data(
        self, client: TestClient, customer_headers, make_product
    ):
        product = make_product(price=20.0, stock=3, category="kitchen", image_url="k.jpg")

        response = client.post(
            CART_URL, json={"product_id": str(product.id)}, headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["items"]) == 1
        item = data["items"][0]
        assert item["product_id"] == str(product.id)
        assert item["name"] == "Chef Knife"
        assert item["unit_price"] == 20.0
        assert item["category"] == "kitchen"
        assert item["image_url"] == "k.jpg"
        assert item["quantity"] == 1
        assert item["stock_ceiling"] == 3
        assert item["line_total"] == 20.0

        assert data["total_item_count"] == 1
        assert data["subtotal"] == pytest.approx(20.0)
        assert data["tax"] == pytest.approx(1.6)
        assert data["shipping_cost"] == 10.0
        assert data["grand_total"] == pytest.approx(31.6)

        assert data["notice"]["variant"] == "default"
        assert data["notice"]["title"] == "Added to cart"
        assert "Chef Knife" in data["notice"]["description"]

    def test_fourth_add_over_stock_returns_notice_and_unchanged_cart(
        self, client: TestClient, customer_headers, make_product
    ):
        product = make_product(stock=3)
        payload = {"product_id": str(product.id)}

        for _ in range(3):
            response = client.post(CART_URL, json=payload, headers=customer_headers)
            assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 3

        response = client.post(CART_URL, json=payload, headers=customer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["items"][0]["quantity"] == 3
        assert data["notice"] == {
            "variant": "destructive",
            "title": "Out of stock",
            "description": "Only 3 items available in stock.",
        }

        # Nothing was persisted by the rejected call
        again = client.get(CART_URL, headers=customer_headers).json()
        assert again["items"][0]["quantity"] == 3

    def test_add_product_without_stock(
        self, client: TestClient, customer_headers, make_product
    ):
        product = make_product(stock=0)

        response = client.post(
            CART_URL, json={"product_id": str(product.id)}, headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["notice"]["description"] == "Only 0 items available in stock."

    def test_unknown_product_is_404(self, client: TestClient, customer_headers):
        response = client.post(
            CART_URL, json={"product_id": str(uuid.uuid4())}, headers=customer_headers
        )

        assert response.status_code == 404

    def test_inactive_product_is_400(
        self, client: TestClient, customer_headers, make_product
    ):
        product = make_product(is_active=False)

        response = client.post(
            CART_URL, json={"product_id": str(product.id)}, headers=customer_headers
        )

        assert response.status_code == 400

    def test_carts_are_per_customer(
        self, client: TestClient, customer_headers, other_customer_headers, make_product
    ):
        product = make_product()
        client.post(CART_URL, json={"product_id": str(product.id)}, headers=customer_headers)

        data = client.get(CART_URL, headers=other_customer_headers).json()

        assert data["items"] == []


class TestUpdateQuantity:
    def test_update_within_stock(self, client: TestClient, customer_headers, make_product):
        product = make_product(price=100.0, stock=5)
        client.post(CART_URL, json={"product_id": str(product.id)}, headers=customer_headers)

        response = client.patch(
            f"{CART_URL}/{product.id}", json={"quantity": 2}, headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["items"][0]["quantity"] == 2
        assert data["subtotal"] == pytest.approx(200.0)
        assert data["shipping_cost"] == 0
        assert data["qualifies_for_free_shipping"] is True
        assert data["grand_total"] == pytest.approx(216.0)

    def test_update_uses_current_catalog_stock(
        self, client: TestClient, customer_headers, make_product, session: Session
    ):
        product = make_product(stock=5)
        client.post(CART_URL, json={"product_id": str(product.id)}, headers=customer_headers)

        product.stock = 2
        session.add(product)
        session.commit()

        response = client.patch(
            f"{CART_URL}/{product.id}", json={"quantity": 3}, headers=customer_headers
        )

        data = response.json()
        assert response.status_code == 200
        assert data["items"][0]["quantity"] == 1
        assert data["notice"]["variant"] == "destructive"
        assert data["notice"]["description"] == "Only 2 items available."

    def test_update_to_zero_removes_line(
        self, client: TestClient, customer_headers, make_product
    ):
        product = make_product()
        client.post(CART_URL, json={"product_id": str(product.id)}, headers=customer_headers)

        response = client.patch(
            f"{CART_URL}/{product.id}", json={"quantity": 0}, headers=customer_headers
        )

        data = response.json()
        assert data["items"] == []
        assert data["grand_total"] == 0

    def test_update_absent_product_is_noop(
        self, client: TestClient, customer_headers, make_product
    ):
        product = make_product()
        client.post(CART_URL, json={"product_id": str(product.id)}, headers=customer_headers)
        before = client.get(CART_URL, headers=customer_headers).json()

        response = client.patch(
            f"{CART_URL}/{uuid.uuid4()}", json={"quantity": 2}, headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == before["items"]
        assert data["grand_total"] == before["grand_total"]
        assert data["notice"] is None

    def test_update_for_deleted_product_is_rejected(
        self, client: TestClient, customer_headers, make_product, session: Session
    ):
        product = make_product()
        product_id = product.id
        client.post(CART_URL, json={"product_id": str(product_id)}, headers=customer_headers)
        session.delete(product)
        session.commit()

        response = client.patch(
            f"{CART_URL}/{product_id}", json={"quantity": 2}, headers=customer_headers
        )

        data = response.json()
        assert data["items"][0]["quantity"] == 1
        assert data["notice"]["description"] == "Only 0 items available."

    def test_update_for_deactivated_product_is_rejected(
        self, client: TestClient, customer_headers, make_product, session: Session
    ):
        product = make_product(stock=5)
        client.post(CART_URL, json={"product_id": str(product.id)}, headers=customer_headers)
        product.is_active = False
        session.add(product)
        session.commit()

        response = client.patch(
            f"{CART_URL}/{product.id}", json={"quantity": 4}, headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["items"][0]["quantity"] == 1
        assert data["notice"]["variant"] == "destructive"
        assert data["notice"]["description"] == "Only 0 items available."

        removed = client.patch(
            f"{CART_URL}/{product.id}", json={"quantity": 0}, headers=customer_headers
        )
        assert removed.json()["items"] == []


class TestRemoveAndClear:
    def test_remove_only_line(self, client: TestClient, customer_headers, make_product):
        product = make_product()
        client.post(CART_URL, json={"product_id": str(product.id)}, headers=customer_headers)

        response = client.delete(f"{CART_URL}/{product.id}", headers=customer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["total_item_count"] == 0
        assert data["subtotal"] == 0
        assert data["grand_total"] == 0
        assert data["notice"]["title"] == "Removed from cart"

    def test_remove_absent_line_is_not_an_error(self, client: TestClient, customer_headers):
        response = client.delete(f"{CART_URL}/{uuid.uuid4()}", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["items"] == []

    def test_clear_keeps_checkout_details(
        self, client: TestClient, customer_headers, make_product, shipping_address
    ):
        a = make_product(name="Chef Knife")
        b = make_product(name="Bread Knife")
        client.post(CART_URL, json={"product_id": str(a.id)}, headers=customer_headers)
        client.post(CART_URL, json={"product_id": str(b.id)}, headers=customer_headers)
        client.put(
            f"{CART_URL}/shipping-address", json=shipping_address, headers=customer_headers
        )

        response = client.delete(CART_URL, headers=customer_headers)

        data = response.json()
        assert data["items"] == []
        assert data["notice"]["title"] == "Cart cleared"
        assert data["shipping_address"] == shipping_address


class TestCheckoutDetails:
    def test_save_shipping_address(
        self, client: TestClient, customer_headers, shipping_address
    ):
        response = client.put(
            f"{CART_URL}/shipping-address", json=shipping_address, headers=customer_headers
        )

        assert response.status_code == 200
        assert response.json()["shipping_address"] == shipping_address
        assert (
            client.get(CART_URL, headers=customer_headers).json()["shipping_address"]
            == shipping_address
        )

    def test_blank_address_field_is_rejected(
        self, client: TestClient, customer_headers, shipping_address
    ):
        shipping_address["city"] = "   "

        response = client.put(
            f"{CART_URL}/shipping-address", json=shipping_address, headers=customer_headers
        )

        assert response.status_code == 422

    def test_save_payment_method(self, client: TestClient, customer_headers):
        response = client.put(
            f"{CART_URL}/payment-method",
            json={"payment_method": "paypal"},
            headers=customer_headers,
        )

        assert response.status_code == 200
        assert response.json()["payment_method"] == "paypal"

    def test_unknown_payment_method_is_rejected(self, client: TestClient, customer_headers):
        response = client.put(
            f"{CART_URL}/payment-method",
            json={"payment_method": "barter"},
            headers=customer_headers,
        )

        assert response.status_code == 422


class TestHydration:
    def _user_cart(self, client: TestClient, headers, session: Session) -> Cart:
        # First request provisions the user and an empty cart document.
        client.put(
            f"{CART_URL}/payment-method", json={"payment_method": "card"}, headers=headers
        )
        return session.exec(select(Cart)).one()

    def test_malformed_state_degrades_to_defaults(
        self,
        client: TestClient,
        customer_headers,
        make_product,
        session: Session,
        caplog: pytest.LogCaptureFixture,
    ):
        product = make_product(price=30.0, stock=4)
        cart = self._user_cart(client, customer_headers, session)
        cart.items = [
            {
                "product_id": str(product.id),
                "name": product.name,
                "unit_price": 30.0,
                "image_url": None,
                "category": None,
                "quantity": 2,
                "stock_ceiling": 4,
            },
            {"product_id": "broken"},
            {"product_id": str(uuid.uuid4()), "quantity": "many"},
        ]
        cart.shipping_address = {"full_name": "Only a name"}
        cart.payment_method = "carrier-pigeon"
        session.add(cart)
        session.commit()

        with caplog.at_level(logging.WARNING):
            response = client.get(CART_URL, headers=customer_headers)

        assert response.status_code == 200
        data = response.json()
        assert [i["product_id"] for i in data["items"]] == [str(product.id)]
        assert data["subtotal"] == pytest.approx(60.0)
        assert data["shipping_address"] is None
        assert data["payment_method"] == "card"

        service_warnings = [
            r.getMessage()
            for r in caplog.records
            if r.name == "app.services.cart_service" and r.levelno == logging.WARNING
        ]
        assert any("shipping address" in m for m in service_warnings)
        assert any("payment method" in m for m in service_warnings)
        engine_warnings = [
            r for r in caplog.records if r.name == "app.services.cart_engine"
        ]
        assert len(engine_warnings) == 2

    def test_next_mutation_rewrites_clean_records(
        self, client: TestClient, customer_headers, make_product, session: Session
    ):
        product = make_product(stock=4)
        cart = self._user_cart(client, customer_headers, session)
        cart.items = [{"garbage": True}]
        session.add(cart)
        session.commit()

        client.post(CART_URL, json={"product_id": str(product.id)}, headers=customer_headers)

        session.refresh(cart)
        assert len(cart.items) == 1
        assert cart.items[0]["product_id"] == str(product.id)
        assert cart.items[0]["quantity"] == 1
