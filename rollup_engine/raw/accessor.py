"""
Raw Data Accessor

Read-only interface over the raw transactional tables. A refresh makes all
of its reads inside one `scan()` so that a store able to offer a coherent
point-in-time view (a single transaction, a frozen copy) can do so.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Iterable, List

from .records import RawOrder, RawOrderItem, RawProduct, RawUser, RawUserActivity


class RawSource(str, Enum):
    """Raw tables a rollup can scan"""
    ORDERS = "orders"
    ORDER_ITEMS = "order_items"
    PRODUCTS = "products"
    USERS = "users"
    USER_ACTIVITIES = "user_activities"


class RawReader(ABC):
    """Reads every row of each raw table."""

    @abstractmethod
    async def fetch_orders(self) -> List[RawOrder]:
        ...

    @abstractmethod
    async def fetch_order_items(self) -> List[RawOrderItem]:
        ...

    @abstractmethod
    async def fetch_products(self) -> List[RawProduct]:
        ...

    @abstractmethod
    async def fetch_users(self) -> List[RawUser]:
        ...

    @abstractmethod
    async def fetch_user_activities(self) -> List[RawUserActivity]:
        ...

    async def fetch(self, source: RawSource) -> list:
        """Fetch all rows of one raw table"""
        fetchers = {
            RawSource.ORDERS: self.fetch_orders,
            RawSource.ORDER_ITEMS: self.fetch_order_items,
            RawSource.PRODUCTS: self.fetch_products,
            RawSource.USERS: self.fetch_users,
            RawSource.USER_ACTIVITIES: self.fetch_user_activities,
        }
        return await fetchers[RawSource(source)]()


class RawDataAccessor(RawReader):
    """
    Raw store as seen by the rollup engine.

    Subclasses override `scan` when they can give a consistent view across
    tables; the default scan reads straight from the accessor.
    """

    @asynccontextmanager
    async def scan(self) -> AsyncIterator[RawReader]:
        yield self


class _FrozenTables(RawReader):
    """Copy of all tables taken at one instant"""

    def __init__(self, orders, order_items, products, users, user_activities):
        self._orders = orders
        self._order_items = order_items
        self._products = products
        self._users = users
        self._user_activities = user_activities

    async def fetch_orders(self) -> List[RawOrder]:
        return list(self._orders)

    async def fetch_order_items(self) -> List[RawOrderItem]:
        return list(self._order_items)

    async def fetch_products(self) -> List[RawProduct]:
        return list(self._products)

    async def fetch_users(self) -> List[RawUser]:
        return list(self._users)

    async def fetch_user_activities(self) -> List[RawUserActivity]:
        return list(self._user_activities)


class InMemoryRawStore(RawDataAccessor):
    """
    Thread-safe in-memory raw store.

    Writers append records at any time; a scan freezes a copy of every table
    so one refresh never sees a write that landed halfway through it.

    Example:
        store = InMemoryRawStore()
        store.add_users([RawUser(id=1, email="a@example.com")])
        rows = await store.fetch_users()
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._orders: List[RawOrder] = []
        self._order_items: List[RawOrderItem] = []
        self._products: List[RawProduct] = []
        self._users: List[RawUser] = []
        self._user_activities: List[RawUserActivity] = []

    def add_orders(self, orders: Iterable[RawOrder]) -> None:
        with self._lock:
            self._orders.extend(orders)

    def add_order_items(self, items: Iterable[RawOrderItem]) -> None:
        with self._lock:
            self._order_items.extend(items)

    def add_products(self, products: Iterable[RawProduct]) -> None:
        with self._lock:
            self._products.extend(products)

    def add_users(self, users: Iterable[RawUser]) -> None:
        with self._lock:
            self._users.extend(users)

    def add_user_activities(self, activities: Iterable[RawUserActivity]) -> None:
        with self._lock:
            self._user_activities.extend(activities)

    def _freeze(self) -> _FrozenTables:
        with self._lock:
            return _FrozenTables(
                tuple(self._orders),
                tuple(self._order_items),
                tuple(self._products),
                tuple(self._users),
                tuple(self._user_activities),
            )

    @asynccontextmanager
    async def scan(self) -> AsyncIterator[RawReader]:
        yield self._freeze()

    async def fetch_orders(self) -> List[RawOrder]:
        return await self._freeze().fetch_orders()

    async def fetch_order_items(self) -> List[RawOrderItem]:
        return await self._freeze().fetch_order_items()

    async def fetch_products(self) -> List[RawProduct]:
        return await self._freeze().fetch_products()

    async def fetch_users(self) -> List[RawUser]:
        return await self._freeze().fetch_users()

    async def fetch_user_activities(self) -> List[RawUserActivity]:
        return await self._freeze().fetch_user_activities()
