"""
Test Suite Configuration
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncIterator, Dict, List, Optional, Set

import pytest

from rollup_engine.raw import (
    InMemoryRawStore,
    RawOrder,
    RawOrderItem,
    RawProduct,
    RawReader,
    RawSource,
    RawUser,
    RawUserActivity,
)
from rollup_engine.rollups import RollupComputer, RollupEngine, build_engine

FIXED_NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


class _FailingReader(RawReader):
    """Delegates to a reader but fails reads of selected tables"""

    def __init__(self, reader: RawReader, fail_sources: Set[RawSource]):
        self._reader = reader
        self._fail_sources = fail_sources

    def _check(self, source: RawSource) -> None:
        if source in self._fail_sources:
            raise ConnectionError(f"connection lost while reading {source.value}")

    async def fetch_orders(self):
        self._check(RawSource.ORDERS)
        return await self._reader.fetch_orders()

    async def fetch_order_items(self):
        self._check(RawSource.ORDER_ITEMS)
        return await self._reader.fetch_order_items()

    async def fetch_products(self):
        self._check(RawSource.PRODUCTS)
        return await self._reader.fetch_products()

    async def fetch_users(self):
        self._check(RawSource.USERS)
        return await self._reader.fetch_users()

    async def fetch_user_activities(self):
        self._check(RawSource.USER_ACTIVITIES)
        return await self._reader.fetch_user_activities()


class ControlledRawStore(InMemoryRawStore):
    """
    In-memory raw store with test controls.

    - `gate`: scans wait for the event before reading
    - `entered`: set once a scan has started
    - `fail_sources`: tables whose reads raise
    """

    def __init__(self):
        super().__init__()
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()
        self.fail_sources: Set[RawSource] = set()
        self.scans = 0

    @asynccontextmanager
    async def scan(self) -> AsyncIterator[RawReader]:
        self.scans += 1
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        async with super().scan() as reader:
            if self.fail_sources:
                yield _FailingReader(reader, set(self.fail_sources))
            else:
                yield reader


def sample_records() -> Dict[RawSource, List]:
    """
    Small storefront:
    - Widget and Gadget both sell 500.00, Novel 200.00, Unsold never sells
    - Alice has two orders and three activities, Bob one of each,
      Carol nothing
    """
    return {
        RawSource.USERS: [
            RawUser(id=1, email="alice@example.com", name="Alice"),
            RawUser(id=2, email="bob@example.com", name="Bob"),
            RawUser(id=3, email="carol@example.com", name="Carol"),
        ],
        RawSource.PRODUCTS: [
            RawProduct(id=1, name="Widget", category="Electronics", price=Decimal("100.00")),
            RawProduct(id=2, name="Gadget", category="Electronics", price=Decimal("250.00")),
            RawProduct(id=3, name="Novel", category="Books", price=Decimal("20.00")),
            RawProduct(id=4, name="Unsold", category="Toys", price=Decimal("5.00")),
        ],
        RawSource.ORDERS: [
            RawOrder(id=1, user_id=1, total_amount=Decimal("300.00"), status="completed",
                     order_date=datetime(2024, 1, 1, 10, 0)),
            RawOrder(id=2, user_id=2, total_amount=Decimal("500.00"), status="cancelled",
                     order_date=datetime(2024, 1, 1, 15, 0)),
            RawOrder(id=3, user_id=1, total_amount=Decimal("400.00"), status="completed",
                     order_date=datetime(2024, 1, 2, 11, 0)),
        ],
        RawSource.ORDER_ITEMS: [
            RawOrderItem(id=1, order_id=1, product_id=1, quantity=3,
                         unit_price=Decimal("100.00"), subtotal=Decimal("300.00")),
            RawOrderItem(id=2, order_id=2, product_id=2, quantity=2,
                         unit_price=Decimal("250.00"), subtotal=Decimal("500.00")),
            RawOrderItem(id=3, order_id=3, product_id=1, quantity=2,
                         unit_price=Decimal("100.00"), subtotal=Decimal("200.00")),
            RawOrderItem(id=4, order_id=3, product_id=3, quantity=10,
                         unit_price=Decimal("20.00"), subtotal=Decimal("200.00")),
        ],
        RawSource.USER_ACTIVITIES: [
            RawUserActivity(id=1, user_id=1, activity_type="page_view",
                            occurred_at=datetime(2024, 1, 5, 12, 0)),
            RawUserActivity(id=2, user_id=1, activity_type="add_to_cart",
                            occurred_at=datetime(2024, 1, 8, 18, 0)),
            RawUserActivity(id=3, user_id=1, activity_type="page_view",
                            occurred_at=datetime(2024, 1, 8, 20, 0)),
            RawUserActivity(id=4, user_id=2, activity_type="search",
                            occurred_at=datetime(2024, 1, 9, 13, 0)),
        ],
    }


def load_records(store: InMemoryRawStore, records: Dict[RawSource, List]) -> None:
    store.add_users(records.get(RawSource.USERS, []))
    store.add_products(records.get(RawSource.PRODUCTS, []))
    store.add_orders(records.get(RawSource.ORDERS, []))
    store.add_order_items(records.get(RawSource.ORDER_ITEMS, []))
    store.add_user_activities(records.get(RawSource.USER_ACTIVITIES, []))


@pytest.fixture
def clock():
    """Fixed UTC clock"""
    return lambda: FIXED_NOW


@pytest.fixture
def raw_store() -> ControlledRawStore:
    """Raw store loaded with the sample storefront"""
    store = ControlledRawStore()
    load_records(store, sample_records())
    return store


@pytest.fixture
def empty_store() -> ControlledRawStore:
    return ControlledRawStore()


@pytest.fixture
def computer(clock) -> RollupComputer:
    return RollupComputer(clock=clock)


@pytest.fixture
def engine(raw_store, clock) -> RollupEngine:
    """Rollup engine over the sample store, nothing refreshed yet"""
    return build_engine(raw_store, clock=clock, timeout=10.0)


class FakeRedis:
    """Dict-backed stand-in for the Redis commands the snapshot cache uses"""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.fail = False

    async def set(self, key, value):
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.data[key] = value
        return True

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis unavailable")
        return self.data.get(key)

    async def delete(self, *keys):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def records() -> Dict[RawSource, List]:
    return sample_records()


@pytest.fixture
def make_store():
    """Factory for controlled raw stores loaded with the given records"""
    def _make(records: Optional[Dict[RawSource, List]] = None) -> ControlledRawStore:
        store = ControlledRawStore()
        load_records(store, records or {})
        return store
    return _make
