# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    A storefront account, keyed by the bearer token's subject.

    Rows are created on the first authenticated request (see
    `app.core.auth`). Credentials live with the token issuer, never here.
    A caller without a token has no row at all.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Token subject",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email claim at first login",
    )

    name: str = Field(
        max_length=50,
        description="Shown on orders; defaults to the email local part",
    )

    # "user" shops, "admin" runs the catalog and order desk
    role: str = Field(
        default="user",
        index=True,
        description="user | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
