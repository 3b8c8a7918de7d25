# rocketcart/schemas/cart.py
import json
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import ValidationError
from sqlmodel import SQLModel, Field

from rocketcart.core.errors import CorruptSnapshotError


class CatalogItem(SQLModel):
    """
    Product metadata as served by the catalog (`GET /products/{id}`).
    """

    id: int
    title: str
    price: float = Field(ge=0)
    image: str


class Item(CatalogItem):
    """
    One cart line: catalog metadata plus the requested amount.

    This is also the persisted shape of a line inside the snapshot.
    """

    amount: int = Field(ge=1, description="Must be >= 1")


class StockEntry(SQLModel):
    """
    Available inventory for one product (`GET /stock/{id}`).
    """

    id: int
    amount: int = Field(ge=0)


# A cart is an ordered, id-unique tuple of lines, replaced wholesale.
Cart = tuple[Item, ...]


class AmountUpdate(SQLModel):
    """
    Payload for setting the amount of a cart line.

    `amount` is taken as sent (missing, text, fractional, ...): the cart
    store classifies it, so a bad value is rejected as INVALID_AMOUNT
    through the same error path as every other failure.
    """

    amount: Any = None


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[Item]
    total_quantity: int
    total_price: float


def summarize(cart: Iterable[Item]) -> CartSummary:
    items = list(cart)
    return CartSummary(
        items=items,
        total_quantity=sum(it.amount for it in items),
        total_price=sum(it.price * it.amount for it in items),
    )


# ---- snapshot (de)serialization ----


def dump_snapshot(cart: Sequence[Item]) -> str:
    """
    Serialize a cart to its persisted form: a JSON array of items.
    """
    return json.dumps([it.model_dump() for it in cart])


def load_snapshot(raw: str) -> list[Item]:
    """
    Parse a persisted snapshot back into items.

    Raises:
        CorruptSnapshotError: if the payload is not a JSON array of
        valid items, or contains the same id twice.
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise CorruptSnapshotError(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise CorruptSnapshotError("Snapshot must be a JSON array")

    try:
        items = [Item.model_validate(entry) for entry in data]
    except ValidationError as e:
        raise CorruptSnapshotError(f"Snapshot contains an invalid item: {e}") from e

    if len({it.id for it in items}) != len(items):
        raise CorruptSnapshotError("Snapshot contains duplicate item ids")

    return items
