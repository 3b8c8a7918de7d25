# rocketcart/repositories/cart_repo.py
import logging
from datetime import datetime, timezone

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from rocketcart.core.errors import StorageUnavailableError
from rocketcart.models.cart import CartSnapshotRecord
from rocketcart.schemas.cart import Cart, Item, dump_snapshot, load_snapshot

logger = logging.getLogger(__name__)


class CartSnapshotRepository:
    """
    Data access layer for CartSnapshotRecord.

    - Pure DB operations.
    - No FastAPI, no business logic.
    """

    def get(self, session: Session, key: str) -> CartSnapshotRecord | None:
        return session.get(CartSnapshotRecord, key)

    def upsert(self, session: Session, key: str, payload: str) -> CartSnapshotRecord:
        record = self.get(session, key)
        if record is None:
            record = CartSnapshotRecord(key=key, payload=payload)
        else:
            record.payload = payload
            record.updated_at = datetime.now(timezone.utc)
        session.add(record)
        session.commit()
        session.refresh(record)
        return record


class SqlCartStorage:
    """
    PersistentStore backed by the `cart_snapshots` table.

    Sync session work is pushed to the thread pool so the event loop
    is never blocked by the database.
    """

    def __init__(
        self,
        engine: Engine,
        key: str,
        repo: CartSnapshotRepository | None = None,
    ):
        self.engine = engine
        self.key = key
        self.repo = repo or CartSnapshotRepository()

    async def load(self) -> list[Item] | None:
        raw = await run_in_threadpool(self._read)
        if raw is None:
            return None
        return load_snapshot(raw)

    async def save(self, cart: Cart) -> None:
        await run_in_threadpool(self._write, dump_snapshot(cart))

    # ---- sync helpers (run in thread pool) ----

    def _read(self) -> str | None:
        try:
            with Session(self.engine) as session:
                record = self.repo.get(session, self.key)
                return record.payload if record else None
        except SQLAlchemyError as e:
            logger.error("Failed to read cart snapshot %r: %s", self.key, e)
            raise StorageUnavailableError(f"Could not read cart snapshot: {e}") from e

    def _write(self, payload: str) -> None:
        try:
            with Session(self.engine) as session:
                self.repo.upsert(session, self.key, payload)
        except SQLAlchemyError as e:
            logger.error("Failed to write cart snapshot %r: %s", self.key, e)
            raise StorageUnavailableError(f"Could not write cart snapshot: {e}") from e
