# rocketcart/core/errors.py
from dataclasses import dataclass
from enum import Enum


# ---------------------------------------------------------------------------
# Collaborator failures (raised by inventory / storage adapters)
# ---------------------------------------------------------------------------


class ProductNotFoundError(LookupError):
    """The inventory service does not know this product id."""

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class InventoryUnavailableError(RuntimeError):
    """The inventory service could not be reached or answered with an error."""


class StorageUnavailableError(RuntimeError):
    """Reading or writing the cart snapshot failed."""


class CorruptSnapshotError(StorageUnavailableError):
    """The stored snapshot is not a valid JSON array of cart items."""


# ---------------------------------------------------------------------------
# Cart operation failures (returned inside Failure(...))
# ---------------------------------------------------------------------------


class CartErrorKind(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    PRODUCT_NOT_FOUND = "product_not_found"
    INVALID_AMOUNT = "invalid_amount"
    SERVICE_UNAVAILABLE = "service_unavailable"


OUT_OF_STOCK_MESSAGE = "Requested quantity is out of stock"
ADD_ERROR_MESSAGE = "Error adding product"
REMOVE_ERROR_MESSAGE = "Error removing product"
UPDATE_ERROR_MESSAGE = "Error updating product amount"
INVALID_AMOUNT_MESSAGE = "Amount must be a positive integer"


@dataclass(frozen=True)
class CartError:
    """
    Tagged failure value of a cart mutation.

    `message` is the human-readable text sent to the notification sink.
    """

    kind: CartErrorKind
    message: str
    product_id: int | None = None
