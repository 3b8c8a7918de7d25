"""
Tests for the snapshot format and the SQL-backed cart storage.
"""
import asyncio
import threading
import time

import pytest
from sqlmodel import Session, select

from rocketcart.core.errors import CorruptSnapshotError, StorageUnavailableError
from rocketcart.models.cart import CartSnapshotRecord
from rocketcart.repositories.cart_repo import CartSnapshotRepository, SqlCartStorage
from rocketcart.schemas.cart import dump_snapshot, load_snapshot
from rocketcart.services.cart_service import CartStore

from tests.conftest import make_item


class TestSnapshotFormat:
    def test_snapshot_is_json_array_of_items(self):
        raw = dump_snapshot([make_item(1, 2)])

        assert raw == (
            '[{"id": 1, "title": "T\\u00eanis 1", "price": 101.0, '
            '"image": "https://rocketshoes.example/img/1.jpg", "amount": 2}]'
        )

    def test_load_accepts_original_layout(self):
        raw = '[{"id": 7, "title": "Shoe", "price": 139.9, "image": "http://x/7.jpg", "amount": 1}]'

        items = load_snapshot(raw)

        assert len(items) == 1
        assert items[0].id == 7
        assert items[0].amount == 1

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"id": 1}',
            '[{"id": 1, "title": "x", "price": 1, "image": "y", "amount": 0}]',
            '[{"id": 1, "title": "x", "price": 1}]',
            '[{"id": 1, "title": "x", "price": 1, "image": "y", "amount": 1},'
            ' {"id": 1, "title": "x", "price": 1, "image": "y", "amount": 2}]',
        ],
    )
    def test_load_rejects_corrupt_snapshots(self, raw):
        with pytest.raises(CorruptSnapshotError):
            load_snapshot(raw)


@pytest.mark.asyncio
class TestSqlCartStorage:
    async def test_load_without_snapshot_returns_none(self, sqlite_engine):
        storage = SqlCartStorage(sqlite_engine, "@RocketShoes:cart")

        assert await storage.load() is None

    async def test_save_replaces_whole_snapshot(self, sqlite_engine):
        storage = SqlCartStorage(sqlite_engine, "@RocketShoes:cart")

        await storage.save((make_item(1, 1), make_item(2, 1)))
        await storage.save((make_item(2, 1),))

        assert await storage.load() == [make_item(2, 1)]
        with Session(sqlite_engine) as session:
            assert len(session.exec(select(CartSnapshotRecord)).all()) == 1

    async def test_save_of_load_is_a_no_op(self, sqlite_engine):
        storage = SqlCartStorage(sqlite_engine, "@RocketShoes:cart")
        await storage.save((make_item(3, 2), make_item(1, 1)))

        first = await storage.load()
        await storage.save(tuple(first))

        assert await storage.load() == first

    async def test_keys_are_isolated(self, sqlite_engine):
        a = SqlCartStorage(sqlite_engine, "cart:a")
        b = SqlCartStorage(sqlite_engine, "cart:b")

        await a.save((make_item(1, 1),))

        assert await b.load() is None

    async def test_corrupt_row_raises(self, sqlite_engine):
        with Session(sqlite_engine) as session:
            session.add(CartSnapshotRecord(key="cart:bad", payload="{oops"))
            session.commit()

        storage = SqlCartStorage(sqlite_engine, "cart:bad")

        with pytest.raises(CorruptSnapshotError):
            await storage.load()

    async def test_missing_table_is_storage_unavailable(self):
        from sqlalchemy.pool import StaticPool
        from sqlmodel import create_engine

        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        storage = SqlCartStorage(engine, "@RocketShoes:cart")

        with pytest.raises(StorageUnavailableError):
            await storage.load()
        with pytest.raises(StorageUnavailableError):
            await storage.save((make_item(1, 1),))

    async def test_cart_store_survives_restart(self, sqlite_engine, inventory):
        """A new store over the same key sees the last committed cart."""
        store = await CartStore.open(inventory, SqlCartStorage(sqlite_engine, "k"))
        await store.add_item(1)
        await store.add_item(1)
        await store.add_item(3)

        reopened = await CartStore.open(inventory, SqlCartStorage(sqlite_engine, "k"))

        assert reopened.cart == (make_item(1, 2), make_item(3, 1))

    async def test_cancel_during_slow_write_keeps_store_consistent(
        self, sqlite_engine, inventory
    ):
        """
        The caller is cancelled while the row is being written: the write
        lands and the store adopts it, so a fresh store sees the same cart.
        """
        repo = SlowRepository()
        store = await CartStore.open(inventory, SqlCartStorage(sqlite_engine, "k", repo))
        task = asyncio.create_task(store.add_item(1))
        await asyncio.to_thread(repo.writing.wait, 5)

        task.cancel()
        await task

        reopened = await CartStore.open(inventory, SqlCartStorage(sqlite_engine, "k"))
        assert store.cart == (make_item(1, 1),)
        assert reopened.cart == store.cart


class SlowRepository(CartSnapshotRepository):
    def __init__(self):
        self.writing = threading.Event()

    def upsert(self, session, key, payload):
        self.writing.set()
        time.sleep(0.2)
        return super().upsert(session, key, payload)
