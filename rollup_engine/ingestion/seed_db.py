"""
Database Seeding

Fills the raw transactional tables with a synthetic dataset for local
development. Existing rows are deleted first; inserts are batched.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import delete, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rollup_engine.config import get_settings
from rollup_engine.config.logging import configure_logging
from rollup_engine.data import DataGenerator, SyntheticDataset
from rollup_engine.database.connection import close_database, get_session_factory, init_database
from rollup_engine.database.models import Base, Order, OrderItem, Product, User, UserActivity

logger = structlog.get_logger(__name__)
settings = get_settings()

# parents before children
TABLES = [
    (User, "users"),
    (Product, "products"),
    (Order, "orders"),
    (OrderItem, "order_items"),
    (UserActivity, "user_activities"),
]


async def execute_batch_insert(
    session: AsyncSession,
    model: Any,
    records: List[Dict[str, Any]],
    batch_size: int,
) -> None:
    """Insert records in chunks using ORM bulk insert"""
    if not records:
        return

    for i in range(0, len(records), batch_size):
        await session.execute(insert(model), records[i:i + batch_size])
    logger.info("Inserted records", table=model.__tablename__, count=len(records))


async def seed_database(
    session_factory: async_sessionmaker[AsyncSession],
    dataset: SyntheticDataset,
    batch_size: Optional[int] = None,
) -> Dict[str, int]:
    """
    Replace the contents of the raw tables with `dataset`.

    Returns:
        Rows inserted per table
    """
    batch_size = batch_size or settings.seed.batch_size

    async with session_factory() as session:
        async with session.begin():
            for model, _ in reversed(TABLES):
                await session.execute(delete(model))

            for model, attr in TABLES:
                await execute_batch_insert(session, model, getattr(dataset, attr), batch_size)

    counts = dataset.counts
    logger.info("Database seeding complete", **counts)
    return counts


async def main():
    configure_logging()
    logger.info("Starting database seeding...")
    engine = await init_database()

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        dataset = DataGenerator().generate()
        await seed_database(get_session_factory(), dataset)
    except Exception as e:
        logger.error("Seeding failed", error=str(e))
        raise
    finally:
        await close_database()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
