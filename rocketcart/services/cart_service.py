# rocketcart/services/cart_service.py
import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from returns.pipeline import is_successful
from returns.result import Failure, Result, Success

from rocketcart.core.errors import (
    ADD_ERROR_MESSAGE,
    INVALID_AMOUNT_MESSAGE,
    OUT_OF_STOCK_MESSAGE,
    REMOVE_ERROR_MESSAGE,
    UPDATE_ERROR_MESSAGE,
    CartError,
    CartErrorKind,
    InventoryUnavailableError,
    ProductNotFoundError,
    StorageUnavailableError,
)
from rocketcart.core.ports import InventoryService, NotificationSink, PersistentStore
from rocketcart.schemas.cart import Cart, CartSummary, Item, summarize

logger = logging.getLogger(__name__)

T = TypeVar("T")

CartResult = Result[Cart, CartError]


def _absorb_cancellation() -> None:
    """
    Withdraw a pending cancel request of the current task, so a cart
    operation can finish with a result instead of CancelledError.
    """
    task = asyncio.current_task()
    if task is not None and task.cancelling():
        task.uncancel()


class CartStore:
    """
    Owner of one cart.

    Responsibilities:
      - keep the authoritative, immutable cart snapshot
      - validate every mutation against current stock before committing
      - persist the new snapshot before adopting it
      - report failures to the notification sink (if one is given)

    Every mutation returns Success(new_cart) or Failure(CartError).
    On failure the in-memory and persisted cart are left untouched.
    """

    def __init__(
        self,
        inventory: InventoryService,
        storage: PersistentStore,
        notifier: NotificationSink | None = None,
        cart: Iterable[Item] = (),
    ):
        self.inventory = inventory
        self.storage = storage
        self.notifier = notifier
        self._cart: Cart = tuple(cart)
        # Serializes the validate-then-commit window of mutations
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        inventory: InventoryService,
        storage: PersistentStore,
        notifier: NotificationSink | None = None,
    ) -> "CartStore":
        """
        Build a store rehydrated from the last persisted snapshot
        (empty cart if nothing was saved yet).

        Raises:
            StorageUnavailableError: if the snapshot cannot be read.
        """
        snapshot = await storage.load()
        return cls(inventory, storage, notifier, snapshot or ())

    # ---- read access ----

    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def busy(self) -> bool:
        """True while a mutation holds the cart lock."""
        return self._lock.locked()

    def summary(self) -> CartSummary:
        return summarize(self._cart)

    # ---- internal helpers ----

    def _find(self, product_id: int) -> tuple[int, Item | None]:
        for index, line in enumerate(self._cart):
            if line.id == product_id:
                return index, line
        return -1, None

    async def _query(
        self,
        lookup: Callable[[int], Awaitable[T]],
        product_id: int,
        message: str,
    ) -> Result[T, CartError]:
        try:
            return Success(await lookup(product_id))
        except ProductNotFoundError:
            return Failure(
                CartError(CartErrorKind.PRODUCT_NOT_FOUND, message, product_id)
            )
        except InventoryUnavailableError as e:
            logger.error("Inventory lookup for product %s failed: %s", product_id, e)
            return Failure(
                CartError(CartErrorKind.SERVICE_UNAVAILABLE, message, product_id)
            )
        except asyncio.CancelledError:
            _absorb_cancellation()
            logger.warning("Inventory lookup for product %s was cancelled", product_id)
            return Failure(
                CartError(CartErrorKind.SERVICE_UNAVAILABLE, message, product_id)
            )

    async def _commit(self, new_cart: Cart, product_id: int, message: str) -> CartResult:
        """
        Run save-then-adopt as one unit.

        Once started, the commit is not interrupted by cancellation of the
        caller, so the in-memory cart always matches what was persisted.
        """
        commit = asyncio.ensure_future(self._save_and_adopt(new_cart, product_id, message))
        while not commit.done():
            try:
                await asyncio.shield(commit)
            except asyncio.CancelledError:
                if commit.cancelled():
                    raise
                _absorb_cancellation()
                logger.warning("Cancellation during commit of product %s deferred", product_id)
        return commit.result()

    async def _save_and_adopt(self, new_cart: Cart, product_id: int, message: str) -> CartResult:
        # Persist first, adopt second: a failed save leaves the store as it was.
        try:
            await self.storage.save(new_cart)
        except StorageUnavailableError as e:
            logger.error("Saving cart snapshot failed: %s", e)
            return Failure(
                CartError(CartErrorKind.SERVICE_UNAVAILABLE, message, product_id)
            )
        self._cart = new_cart
        return Success(new_cart)

    def _report(self, operation: str, product_id: int, result: CartResult) -> CartResult:
        if is_successful(result):
            logger.info("cart %s product=%s ok (%d lines)", operation, product_id, len(self._cart))
            return result

        error = result.failure()
        logger.warning(
            "cart %s product=%s rejected: %s", operation, product_id, error.kind.value
        )
        if self.notifier is not None:
            try:
                self.notifier.report(error.message)
            except Exception:
                logger.exception("Notification sink failed for cart %s", operation)
        return result

    # ---- public operations ----

    async def add_item(self, product_id: int) -> CartResult:
        """
        Add one unit of a product.

        Rules:
          - current amount + 1 must not exceed stock
          - new products are appended with amount 1 and catalog metadata
          - existing lines are incremented in place (order is kept)
        """
        async with self._lock:
            result = await self._add_item(product_id)
        return self._report("add", product_id, result)

    async def _add_item(self, product_id: int) -> CartResult:
        index, line = self._find(product_id)
        requested = (line.amount if line else 0) + 1

        stock_result = await self._query(
            self.inventory.get_stock, product_id, ADD_ERROR_MESSAGE
        )
        if not is_successful(stock_result):
            return stock_result
        stock = stock_result.unwrap()

        if requested > stock.amount:
            return Failure(
                CartError(CartErrorKind.OUT_OF_STOCK, OUT_OF_STOCK_MESSAGE, product_id)
            )

        if line is None:
            product_result = await self._query(
                self.inventory.get_catalog_item, product_id, ADD_ERROR_MESSAGE
            )
            if not is_successful(product_result):
                return product_result
            product = product_result.unwrap()
            new_line = Item(**product.model_dump(), amount=1)
            new_cart = (*self._cart, new_line)
        else:
            new_line = Item(**{**line.model_dump(), "amount": requested})
            new_cart = (*self._cart[:index], new_line, *self._cart[index + 1 :])

        return await self._commit(new_cart, product_id, ADD_ERROR_MESSAGE)

    async def remove_item(self, product_id: int) -> CartResult:
        """
        Remove a product line. Nothing is persisted if it is not in the cart.
        """
        async with self._lock:
            result = await self._remove_item(product_id)
        return self._report("remove", product_id, result)

    async def _remove_item(self, product_id: int) -> CartResult:
        _, line = self._find(product_id)
        if line is None:
            return Failure(
                CartError(CartErrorKind.PRODUCT_NOT_FOUND, REMOVE_ERROR_MESSAGE, product_id)
            )

        new_cart = tuple(it for it in self._cart if it.id != product_id)
        return await self._commit(new_cart, product_id, REMOVE_ERROR_MESSAGE)

    async def update_amount(self, product_id: int, amount: Any) -> CartResult:
        """
        Set the amount of an existing line (absolute value, not a delta).

        Rules:
          - amount must be a positive integer (checked before any I/O)
          - the line must already be in the cart
          - amount must not exceed current stock
        """
        async with self._lock:
            result = await self._update_amount(product_id, amount)
        return self._report("update", product_id, result)

    async def _update_amount(self, product_id: int, amount: Any) -> CartResult:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            return Failure(
                CartError(CartErrorKind.INVALID_AMOUNT, INVALID_AMOUNT_MESSAGE, product_id)
            )

        index, line = self._find(product_id)
        if line is None:
            return Failure(
                CartError(CartErrorKind.PRODUCT_NOT_FOUND, UPDATE_ERROR_MESSAGE, product_id)
            )

        stock_result = await self._query(
            self.inventory.get_stock, product_id, UPDATE_ERROR_MESSAGE
        )
        if not is_successful(stock_result):
            return stock_result

        if amount > stock_result.unwrap().amount:
            return Failure(
                CartError(CartErrorKind.OUT_OF_STOCK, OUT_OF_STOCK_MESSAGE, product_id)
            )

        new_line = Item(**{**line.model_dump(), "amount": amount})
        new_cart = (*self._cart[:index], new_line, *self._cart[index + 1 :])
        return await self._commit(new_cart, product_id, UPDATE_ERROR_MESSAGE)


class CartStoreRegistry:
    """
    One CartStore per storage key, opened lazily and kept for reuse,
    so concurrent requests on the same cart share its lock.

    At most `max_size` stores are kept; the least recently used idle
    ones are dropped first and rehydrate from storage when asked again.
    """

    def __init__(
        self,
        inventory: InventoryService,
        storage_factory: Callable[[str], PersistentStore],
        notifier: NotificationSink | None = None,
        max_size: int = 1024,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.inventory = inventory
        self.storage_factory = storage_factory
        self.notifier = notifier
        self.max_size = max_size
        self._stores: OrderedDict[str, CartStore] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._stores)

    def __contains__(self, key: str) -> bool:
        return key in self._stores

    async def get(self, key: str) -> CartStore:
        """
        Raises:
            StorageUnavailableError: if the cart cannot be rehydrated.
        """
        async with self._lock:
            store = self._stores.get(key)
            if store is None:
                store = await CartStore.open(
                    self.inventory, self.storage_factory(key), self.notifier
                )
                self._stores[key] = store
            else:
                self._stores.move_to_end(key)
            self._evict(keep=key)
            return store

    def _evict(self, keep: str) -> None:
        # Oldest first; stores in the middle of a mutation are never dropped
        for key in list(self._stores):
            if len(self._stores) <= self.max_size:
                break
            if key == keep or self._stores[key].busy:
                continue
            del self._stores[key]
            logger.debug("cart store %r evicted from registry", key)
