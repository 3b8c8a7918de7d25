# rocketcart/routers/cart.py
from fastapi import APIRouter, Depends, Header, HTTPException, status
from returns.pipeline import is_successful

from rocketcart.core.config import get_settings
from rocketcart.core.errors import CartError, CartErrorKind, StorageUnavailableError
from rocketcart.core.notifications import LoggingNotificationSink
from rocketcart.database import engine
from rocketcart.integrations.inventory_client import HttpInventoryService
from rocketcart.repositories.cart_repo import SqlCartStorage
from rocketcart.schemas.cart import AmountUpdate, CartSummary, summarize
from rocketcart.services.cart_service import CartResult, CartStore, CartStoreRegistry

settings = get_settings()

router = APIRouter(prefix="/cart", tags=["Cart"])

inventory = HttpInventoryService(
    settings.INVENTORY_API_URL,
    timeout=settings.INVENTORY_TIMEOUT_SECONDS,
)
registry = CartStoreRegistry(
    inventory,
    storage_factory=lambda key: SqlCartStorage(engine, key),
    notifier=LoggingNotificationSink(),
    max_size=settings.CART_REGISTRY_MAX_SIZE,
)

_ERROR_STATUS: dict[CartErrorKind, int] = {
    CartErrorKind.PRODUCT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CartErrorKind.OUT_OF_STOCK: status.HTTP_409_CONFLICT,
    CartErrorKind.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    CartErrorKind.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_registry() -> CartStoreRegistry:
    """
    FastAPI dependency returning the process-wide cart registry.
    Tests override it with a registry wired to fakes.
    """
    return registry


def storage_key(session_id: str | None) -> str:
    """
    Storage key of a cart: the configured key, scoped by session if given.
    """
    if session_id:
        return f"{settings.CART_STORAGE_KEY}:{session_id}"
    return settings.CART_STORAGE_KEY


async def get_cart_store(
    x_cart_session: str | None = Header(default=None),
    carts: CartStoreRegistry = Depends(get_registry),
) -> CartStore:
    try:
        return await carts.get(storage_key(x_cart_session))
    except StorageUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cart storage unavailable",
        )


def _to_summary(result: CartResult) -> CartSummary:
    """
    Unwrap a cart result into a summary, or raise the mapped HTTP error.
    """
    if not is_successful(result):
        error: CartError = result.failure()
        raise HTTPException(status_code=_ERROR_STATUS[error.kind], detail=error.message)
    return summarize(result.unwrap())


@router.get("", response_model=CartSummary)
async def get_cart(store: CartStore = Depends(get_cart_store)):
    """
    Get the current cart with totals.
    """
    return store.summary()


@router.post("/items/{product_id}", response_model=CartSummary)
async def add_item(product_id: int, store: CartStore = Depends(get_cart_store)):
    """
    Add one unit of a product to the cart.

    Returns the updated cart summary.
    """
    return _to_summary(await store.add_item(product_id))


@router.patch("/items/{product_id}", response_model=CartSummary)
async def update_item_amount(
    product_id: int,
    payload: AmountUpdate,
    store: CartStore = Depends(get_cart_store),
):
    """
    Set the amount of a product already in the cart.

    Returns the updated cart summary.
    """
    return _to_summary(await store.update_amount(product_id, payload.amount))


@router.delete("/items/{product_id}", response_model=CartSummary)
async def remove_item(product_id: int, store: CartStore = Depends(get_cart_store)):
    """
    Remove a product from the cart.

    Returns the updated cart summary.
    """
    return _to_summary(await store.remove_item(product_id))
