"""
Raw Frames

Converts raw records into typed polars frames. Every frame is built with an
explicit schema so an empty table still aggregates into an empty, correctly
typed result. Money becomes Float64 and timestamps become naive UTC.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Sequence

import polars as pl

from rollup_engine.raw import RawSource
from rollup_engine.raw.records import (
    RawOrder,
    RawOrderItem,
    RawProduct,
    RawUser,
    RawUserActivity,
)

ORDERS_SCHEMA = {
    "id": pl.Int64,
    "user_id": pl.Int64,
    "total_amount": pl.Float64,
    "status": pl.Utf8,
    "order_date": pl.Datetime("us"),
}

ORDER_ITEMS_SCHEMA = {
    "id": pl.Int64,
    "order_id": pl.Int64,
    "product_id": pl.Int64,
    "quantity": pl.Int64,
    "unit_price": pl.Float64,
    "subtotal": pl.Float64,
}

PRODUCTS_SCHEMA = {
    "id": pl.Int64,
    "name": pl.Utf8,
    "category": pl.Utf8,
    "price": pl.Float64,
}

USERS_SCHEMA = {
    "id": pl.Int64,
    "email": pl.Utf8,
    "name": pl.Utf8,
}

USER_ACTIVITIES_SCHEMA = {
    "id": pl.Int64,
    "user_id": pl.Int64,
    "activity_type": pl.Utf8,
    "occurred_at": pl.Datetime("us"),
}


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a timestamp to naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _money(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def orders_frame(orders: Sequence[RawOrder]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "id": [o.id for o in orders],
            "user_id": [o.user_id for o in orders],
            "total_amount": [_money(o.total_amount) for o in orders],
            "status": [o.status for o in orders],
            "order_date": [to_naive_utc(o.order_date) for o in orders],
        },
        schema=ORDERS_SCHEMA,
    )


def order_items_frame(items: Sequence[RawOrderItem]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "id": [i.id for i in items],
            "order_id": [i.order_id for i in items],
            "product_id": [i.product_id for i in items],
            "quantity": [i.quantity for i in items],
            "unit_price": [_money(i.unit_price) for i in items],
            "subtotal": [_money(i.subtotal) for i in items],
        },
        schema=ORDER_ITEMS_SCHEMA,
    )


def products_frame(products: Sequence[RawProduct]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "id": [p.id for p in products],
            "name": [p.name for p in products],
            "category": [p.category for p in products],
            "price": [_money(p.price) for p in products],
        },
        schema=PRODUCTS_SCHEMA,
    )


def users_frame(users: Sequence[RawUser]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "id": [u.id for u in users],
            "email": [u.email for u in users],
            "name": [u.name for u in users],
        },
        schema=USERS_SCHEMA,
    )


def user_activities_frame(activities: Sequence[RawUserActivity]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "id": [a.id for a in activities],
            "user_id": [a.user_id for a in activities],
            "activity_type": [a.activity_type for a in activities],
            "occurred_at": [to_naive_utc(a.occurred_at) for a in activities],
        },
        schema=USER_ACTIVITIES_SCHEMA,
    )


_BUILDERS = {
    RawSource.ORDERS: orders_frame,
    RawSource.ORDER_ITEMS: order_items_frame,
    RawSource.PRODUCTS: products_frame,
    RawSource.USERS: users_frame,
    RawSource.USER_ACTIVITIES: user_activities_frame,
}


@dataclass(frozen=True)
class RawFrames:
    """The raw tables one rollup computation scanned"""
    tables: Dict[RawSource, pl.DataFrame]

    @classmethod
    def from_records(cls, records: Dict[RawSource, Sequence]) -> "RawFrames":
        # sorted by id so aggregation input order does not depend on the store
        return cls({source: _BUILDERS[source](rows).sort("id") for source, rows in records.items()})

    def __getitem__(self, source: RawSource) -> pl.DataFrame:
        return self.tables[source]

    @property
    def row_count(self) -> int:
        """Total raw rows scanned"""
        return sum(df.height for df in self.tables.values())

    @property
    def orders(self) -> pl.DataFrame:
        return self.tables[RawSource.ORDERS]

    @property
    def order_items(self) -> pl.DataFrame:
        return self.tables[RawSource.ORDER_ITEMS]

    @property
    def products(self) -> pl.DataFrame:
        return self.tables[RawSource.PRODUCTS]

    @property
    def users(self) -> pl.DataFrame:
        return self.tables[RawSource.USERS]

    @property
    def user_activities(self) -> pl.DataFrame:
        return self.tables[RawSource.USER_ACTIVITIES]
