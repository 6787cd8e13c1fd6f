"""
SQL Raw Store

Reads the raw tables through SQLAlchemy. All reads of one scan share a
session, i.e. one transaction; the isolation level of that transaction is
configurable and otherwise left to the database default.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rollup_engine.config import get_settings
from rollup_engine.database.connection import get_session_factory
from rollup_engine.database.models import Order, OrderItem, Product, User, UserActivity
from .accessor import RawDataAccessor, RawReader
from .records import RawOrder, RawOrderItem, RawProduct, RawUser, RawUserActivity

logger = structlog.get_logger(__name__)
settings = get_settings()


class _SessionReader(RawReader):
    """Reads raw tables on one open session"""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def fetch_orders(self) -> List[RawOrder]:
        result = await self._session.execute(
            select(Order.id, Order.user_id, Order.total_amount, Order.status, Order.order_date)
        )
        return [RawOrder(*row) for row in result.all()]

    async def fetch_order_items(self) -> List[RawOrderItem]:
        result = await self._session.execute(
            select(
                OrderItem.id,
                OrderItem.order_id,
                OrderItem.product_id,
                OrderItem.quantity,
                OrderItem.unit_price,
                OrderItem.subtotal,
            )
        )
        return [RawOrderItem(*row) for row in result.all()]

    async def fetch_products(self) -> List[RawProduct]:
        result = await self._session.execute(
            select(Product.id, Product.name, Product.category, Product.price)
        )
        return [RawProduct(*row) for row in result.all()]

    async def fetch_users(self) -> List[RawUser]:
        result = await self._session.execute(select(User.id, User.email, User.name))
        return [RawUser(*row) for row in result.all()]

    async def fetch_user_activities(self) -> List[RawUserActivity]:
        result = await self._session.execute(
            select(
                UserActivity.id,
                UserActivity.user_id,
                UserActivity.activity_type,
                UserActivity.occurred_at,
            )
        )
        return [RawUserActivity(*row) for row in result.all()]


class SqlRawStore(RawDataAccessor):
    """
    Raw data accessor over the relational store.

    Without an explicit session factory the global one from
    `init_database` is looked up at scan time.

    Example:
        store = SqlRawStore(get_session_factory())
        async with store.scan() as reader:
            orders = await reader.fetch_orders()
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        isolation_level: Optional[str] = None,
    ):
        self._session_factory = session_factory
        self._isolation_level = isolation_level or settings.database.scan_isolation_level

    @asynccontextmanager
    async def scan(self) -> AsyncIterator[RawReader]:
        factory = self._session_factory or get_session_factory()
        async with factory() as session:
            if self._isolation_level:
                await session.connection(
                    execution_options={"isolation_level": self._isolation_level}
                )
            logger.debug("Raw scan opened", isolation_level=self._isolation_level)
            # read-only; the transaction is rolled back when the session closes
            yield _SessionReader(session)

    async def fetch_orders(self) -> List[RawOrder]:
        async with self.scan() as reader:
            return await reader.fetch_orders()

    async def fetch_order_items(self) -> List[RawOrderItem]:
        async with self.scan() as reader:
            return await reader.fetch_order_items()

    async def fetch_products(self) -> List[RawProduct]:
        async with self.scan() as reader:
            return await reader.fetch_products()

    async def fetch_users(self) -> List[RawUser]:
        async with self.scan() as reader:
            return await reader.fetch_users()

    async def fetch_user_activities(self) -> List[RawUserActivity]:
        async with self.scan() as reader:
            return await reader.fetch_user_activities()
