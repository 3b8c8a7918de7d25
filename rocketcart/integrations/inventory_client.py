# rocketcart/integrations/inventory_client.py
"""
HTTP adapter for the products / stock service.

Endpoints consumed:
  - GET /products/{id} -> {"id", "title", "price", "image"}
  - GET /stock/{id}    -> {"id", "amount"}
  - GET /stock         -> [{"id", "amount"}, ...]

Error mapping:
  - 404                            -> ProductNotFoundError
  - other non-2xx, network errors,
    malformed bodies               -> InventoryUnavailableError
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from rocketcart.core.errors import InventoryUnavailableError, ProductNotFoundError
from rocketcart.schemas.cart import CatalogItem, StockEntry

logger = logging.getLogger(__name__)


class HttpInventoryService:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Injected transport is used by tests (httpx.MockTransport)
        self.transport = transport

    async def _get_json(self, path: str, product_id: int | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                r = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("Inventory request GET %s failed: %s", url, e)
            raise InventoryUnavailableError(f"Inventory service unreachable: {e}") from e

        if r.status_code == 404 and product_id is not None:
            raise ProductNotFoundError(product_id)

        if r.status_code >= 400:
            logger.error("Inventory request GET %s returned %s", url, r.status_code)
            raise InventoryUnavailableError(
                f"Inventory service answered {r.status_code} for {path}"
            )

        try:
            return r.json()
        except ValueError as e:
            raise InventoryUnavailableError(f"Invalid JSON from {path}") from e

    async def get_stock(self, product_id: int) -> StockEntry:
        data = await self._get_json(f"/stock/{product_id}", product_id)
        try:
            return StockEntry.model_validate(data)
        except ValidationError as e:
            raise InventoryUnavailableError(f"Invalid stock entry for {product_id}") from e

    async def get_catalog_item(self, product_id: int) -> CatalogItem:
        data = await self._get_json(f"/products/{product_id}", product_id)
        try:
            return CatalogItem.model_validate(data)
        except ValidationError as e:
            raise InventoryUnavailableError(f"Invalid product payload for {product_id}") from e

    async def list_stock(self) -> list[StockEntry]:
        data = await self._get_json("/stock")
        if not isinstance(data, list):
            raise InventoryUnavailableError("Stock listing must be a JSON array")
        try:
            return [StockEntry.model_validate(entry) for entry in data]
        except ValidationError as e:
            raise InventoryUnavailableError("Invalid stock listing") from e
