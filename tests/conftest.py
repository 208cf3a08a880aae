"""
Shared fixtures.

The app reads its settings at import time, so the environment is pointed at
an in-memory SQLite database before anything from `app` is imported.
"""
import os
import uuid

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_JWT_SECRET"] = "test-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlmodel import SQLModel, Session  # noqa: E402

from app.database import engine, get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.models.product import Product  # noqa: E402
from app.models.user import User  # noqa: E402


def make_token(user_id: uuid.UUID, email: str) -> str:
    return jwt.encode(
        {"sub": str(user_id), "email": email},
        os.environ["AUTH_JWT_SECRET"],
        algorithm="HS256",
    )


def auth_headers(user_id: uuid.UUID, email: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


@pytest.fixture(autouse=True)
def _tables():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customer_headers() -> dict[str, str]:
    """Token for a customer that is auto-provisioned on first request."""
    return auth_headers(uuid.uuid4(), "customer@example.com")


@pytest.fixture
def other_customer_headers() -> dict[str, str]:
    return auth_headers(uuid.uuid4(), "someone.else@example.com")


@pytest.fixture
def admin_headers(session: Session) -> dict[str, str]:
    admin = User(id=uuid.uuid4(), email="admin@example.com", name="admin", role="admin")
    session.add(admin)
    session.commit()
    return auth_headers(admin.id, admin.email)


@pytest.fixture
def make_product(session: Session):
    def _make(
        name: str = "Chef Knife",
        price: float = 20.0,
        stock: int = 3,
        **fields,
    ) -> Product:
        product = Product(
            name=name,
            slug=f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:8]}",
            price=price,
            stock=stock,
            **fields,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture
def shipping_address() -> dict[str, str]:
    return {
        "full_name": "Ada Lovelace",
        "address": "12 Analytical Way",
        "city": "London",
        "postal_code": "N1 9GU",
        "country": "UK",
        "phone": "+44 20 7946 0000",
    }
