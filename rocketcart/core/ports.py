# rocketcart/core/ports.py
"""
Interfaces of the collaborators the cart store depends on.

Adapters live in:
  - rocketcart.integrations.inventory_client (InventoryService)
  - rocketcart.repositories.cart_repo (PersistentStore)
  - rocketcart.core.notifications (NotificationSink)
"""
from typing import Protocol

from rocketcart.schemas.cart import Cart, CatalogItem, Item, StockEntry


class InventoryService(Protocol):
    """
    Read-only view of stock and catalog.

    Both lookups raise ProductNotFoundError for an unknown id and
    InventoryUnavailableError when the service cannot answer.
    """

    async def get_stock(self, product_id: int) -> StockEntry: ...

    async def get_catalog_item(self, product_id: int) -> CatalogItem: ...


class PersistentStore(Protocol):
    """
    Single-slot durable register for the cart snapshot.

    Both methods raise StorageUnavailableError on I/O failure.
    """

    async def load(self) -> list[Item] | None: ...

    async def save(self, cart: Cart) -> None: ...


class NotificationSink(Protocol):
    def report(self, message: str) -> None: ...
