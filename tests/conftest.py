"""
Shared fixtures for the cart tests.

- FakeInventory: in-memory stock + catalog with switchable outage
- MemoryStorage: in-memory snapshot register that round-trips through JSON
- sqlite_engine: in-memory SQLite with the snapshot table created
"""
import asyncio

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from rocketcart.core.errors import (
    InventoryUnavailableError,
    ProductNotFoundError,
    StorageUnavailableError,
)
from rocketcart.core.notifications import CollectingNotificationSink
from rocketcart.database import create_db_and_tables
from rocketcart.schemas.cart import (
    CatalogItem,
    Item,
    StockEntry,
    dump_snapshot,
    load_snapshot,
)


def catalog_entry(product_id: int) -> CatalogItem:
    return CatalogItem(
        id=product_id,
        title=f"Tênis {product_id}",
        price=100.0 + product_id,
        image=f"https://rocketshoes.example/img/{product_id}.jpg",
    )


def make_item(product_id: int, amount: int) -> Item:
    return Item(**catalog_entry(product_id).model_dump(), amount=amount)


class FakeInventory:
    def __init__(self, stock: dict[int, int]):
        self.stock = dict(stock)
        self.catalog = {pid: catalog_entry(pid) for pid in stock}
        self.unavailable = False
        self.calls: list[tuple[str, int]] = []

    def _check(self, kind: str, product_id: int) -> None:
        self.calls.append((kind, product_id))
        if self.unavailable:
            raise InventoryUnavailableError("inventory is down")
        if product_id not in self.stock:
            raise ProductNotFoundError(product_id)

    async def get_stock(self, product_id: int) -> StockEntry:
        # Yield once so concurrent callers really interleave
        await asyncio.sleep(0)
        self._check("stock", product_id)
        return StockEntry(id=product_id, amount=self.stock[product_id])

    async def get_catalog_item(self, product_id: int) -> CatalogItem:
        await asyncio.sleep(0)
        self._check("product", product_id)
        return self.catalog[product_id]


class MemoryStorage:
    def __init__(self, cart: list[Item] | None = None):
        self.raw: str | None = dump_snapshot(cart) if cart is not None else None
        self.saves = 0
        self.fail_saves = False

    async def load(self) -> list[Item] | None:
        if self.raw is None:
            return None
        return load_snapshot(self.raw)

    async def save(self, cart) -> None:
        if self.fail_saves:
            raise StorageUnavailableError("disk full")
        self.saves += 1
        self.raw = dump_snapshot(cart)


@pytest.fixture
def inventory() -> FakeInventory:
    """Stock: product 1 -> 5 units, 2 -> 1 unit, 3 -> 3 units."""
    return FakeInventory({1: 5, 2: 1, 3: 3})


@pytest.fixture
def notifier() -> CollectingNotificationSink:
    return CollectingNotificationSink()


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()
