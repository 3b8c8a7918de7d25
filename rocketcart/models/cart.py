# rocketcart/models/cart.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class CartSnapshotRecord(SQLModel, table=True):
    """
    Durable single-slot register for a cart snapshot.
    One row per storage key; each save replaces the whole payload.
    """

    __tablename__ = "cart_snapshots"

    key: str = Field(
        primary_key=True,
        max_length=255,
        description="Well-known storage key of the cart (per session)",
    )

    payload: str = Field(
        description="JSON array of cart items",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
