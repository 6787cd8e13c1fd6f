"""
Aggregate Definitions

Declarative description of every rollup: the raw tables it scans, the
grouping key (also its uniqueness key), the row model that fixes its
columns and the sort order. Ties on the sort columns are always broken by
the grouping key ascending so pagination is reproducible.

Null policy: a group with nothing on the joined side (a product never
ordered, a user without activity) gets 0 for counts and sums and None for
averages, ratios and maxima.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Dict, Iterable, List, Optional, Tuple, Type

import polars as pl

from rollup_engine.exceptions import UnknownRollupError
from rollup_engine.quality import (
    DataValidator,
    create_orders_validator,
    create_user_activities_validator,
)
from rollup_engine.raw import RawSource
from .frames import RawFrames, to_naive_utc
from .rows import (
    CategoryRevenueRow,
    DailySalesRow,
    RollupRow,
    TopProductRow,
    UserEngagementRow,
)

SECONDS_PER_DAY = 86_400
MONEY_DECIMALS = 2


@dataclass(frozen=True)
class SortKey:
    column: str
    descending: bool = False


class AggregateDefinition(ABC):
    """
    Base class for a rollup.

    Subclasses declare the class attributes and implement `aggregate`, which
    returns one row per group with at least the row model's columns, in any
    order. `build` applies the sort and column selection.
    """

    name: ClassVar[str]
    key: ClassVar[str]
    sources: ClassVar[Tuple[RawSource, ...]]
    row_model: ClassVar[Type[RollupRow]]
    sort_keys: ClassVar[Tuple[SortKey, ...]]

    def source_validators(self) -> Dict[RawSource, DataValidator]:
        """Checks the raw frames must pass before aggregation"""
        return {}

    @abstractmethod
    def aggregate(self, frames: RawFrames, computed_at: datetime) -> pl.DataFrame:
        ...

    @property
    def columns(self) -> List[str]:
        return list(self.row_model.model_fields)

    def order(self, df: pl.DataFrame) -> pl.DataFrame:
        """Sort by the declared keys, then by the grouping key ascending"""
        columns = [k.column for k in self.sort_keys]
        descending = [k.descending for k in self.sort_keys]
        if self.key not in columns:
            columns.append(self.key)
            descending.append(False)
        return df.sort(columns, descending=descending, nulls_last=True)

    def build(self, frames: RawFrames, computed_at: datetime) -> pl.DataFrame:
        return self.order(self.aggregate(frames, computed_at)).select(self.columns)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class DailySales(AggregateDefinition):
    """Orders per calendar day of order_date"""

    name = "daily_sales"
    key = "sale_date"
    sources = (RawSource.ORDERS,)
    row_model = DailySalesRow
    sort_keys = (SortKey("sale_date", descending=True),)

    def source_validators(self) -> Dict[RawSource, DataValidator]:
        return {RawSource.ORDERS: create_orders_validator(require_order_date=True)}

    def aggregate(self, frames: RawFrames, computed_at: datetime) -> pl.DataFrame:
        return (
            frames.orders
            .with_columns(pl.col("order_date").dt.date().alias("sale_date"))
            .group_by("sale_date")
            .agg(
                pl.col("id").n_unique().alias("total_orders"),
                pl.col("user_id").drop_nulls().n_unique().alias("unique_customers"),
                pl.col("total_amount").sum().round(MONEY_DECIMALS).alias("total_revenue"),
                pl.col("total_amount").mean().round(MONEY_DECIMALS).alias("average_order_value"),
                (pl.col("status") == "completed").sum().alias("completed_orders"),
                (pl.col("status") == "cancelled").sum().alias("cancelled_orders"),
                (pl.col("status") == "refunded").sum().alias("refunded_orders"),
            )
        )


class TopProducts(AggregateDefinition):
    """Products left-joined to their order items"""

    name = "top_products"
    key = "product_id"
    sources = (RawSource.PRODUCTS, RawSource.ORDER_ITEMS)
    row_model = TopProductRow
    sort_keys = (SortKey("total_revenue", descending=True),)

    def aggregate(self, frames: RawFrames, computed_at: datetime) -> pl.DataFrame:
        products = frames.products.rename({"id": "product_id", "name": "product_name"})
        items = frames.order_items.select("order_id", "product_id", "quantity", "subtotal")

        return (
            products.join(items, on="product_id", how="left")
            .group_by("product_id")
            .agg(
                pl.col("product_name").first(),
                pl.col("category").first(),
                pl.col("price").first(),
                pl.col("order_id").drop_nulls().n_unique().alias("times_ordered"),
                pl.col("quantity").sum().alias("total_quantity_sold"),
                pl.col("subtotal").sum().round(MONEY_DECIMALS).alias("total_revenue"),
                pl.col("quantity").mean().alias("avg_quantity_per_order"),
            )
            .with_columns(
                pl.when(pl.col("total_quantity_sold") > 0)
                .then((pl.col("total_revenue") / pl.col("total_quantity_sold")).round(MONEY_DECIMALS))
                .otherwise(None)
                .alias("avg_revenue_per_unit")
            )
        )


class CategoryRevenue(AggregateDefinition):
    """Products left-joined to order items, grouped by category"""

    name = "category_revenue"
    key = "category"
    sources = (RawSource.PRODUCTS, RawSource.ORDER_ITEMS)
    row_model = CategoryRevenueRow
    sort_keys = (SortKey("total_revenue", descending=True),)

    def aggregate(self, frames: RawFrames, computed_at: datetime) -> pl.DataFrame:
        products = frames.products.select(
            pl.col("id").alias("product_id"), "category", "price"
        )
        items = frames.order_items.select("order_id", "product_id", "quantity", "subtotal")

        return (
            products.join(items, on="product_id", how="left")
            .group_by("category")
            .agg(
                pl.col("product_id").n_unique().alias("product_count"),
                pl.col("order_id").drop_nulls().n_unique().alias("total_orders"),
                pl.col("quantity").sum().alias("total_units_sold"),
                pl.col("subtotal").sum().round(MONEY_DECIMALS).alias("total_revenue"),
                # mean line subtotal
                pl.col("subtotal").mean().round(MONEY_DECIMALS).alias("avg_revenue_per_order"),
                pl.col("price").min().alias("min_product_price"),
                pl.col("price").max().alias("max_product_price"),
                # each product once, however many items it has
                pl.col("price")
                .filter(pl.col("product_id").is_first_distinct())
                .mean()
                .round(MONEY_DECIMALS)
                .alias("avg_product_price"),
            )
        )


class UserEngagement(AggregateDefinition):
    """Users left-joined to their orders and their activities"""

    name = "user_engagement"
    key = "user_id"
    sources = (RawSource.USERS, RawSource.ORDERS, RawSource.USER_ACTIVITIES)
    row_model = UserEngagementRow
    sort_keys = (SortKey("lifetime_value", descending=True),)

    def source_validators(self) -> Dict[RawSource, DataValidator]:
        return {
            RawSource.ORDERS: create_orders_validator(),
            RawSource.USER_ACTIVITIES: create_user_activities_validator(),
        }

    def aggregate(self, frames: RawFrames, computed_at: datetime) -> pl.DataFrame:
        # orders and activities are reduced per user before joining so that
        # order sums are not multiplied by the number of activities
        orders = frames.orders.group_by("user_id").agg(
            pl.col("id").n_unique().alias("total_orders"),
            pl.col("total_amount").sum().round(MONEY_DECIMALS).alias("lifetime_value"),
            pl.col("total_amount").mean().round(MONEY_DECIMALS).alias("avg_order_value"),
            pl.col("order_date").max().alias("last_order_date"),
        )
        activities = frames.user_activities.group_by("user_id").agg(
            pl.col("id").n_unique().alias("total_activities"),
            pl.col("id").filter(pl.col("activity_type") == "page_view").n_unique().alias("page_views"),
            pl.col("id").filter(pl.col("activity_type") == "add_to_cart").n_unique().alias("add_to_cart_count"),
            pl.col("occurred_at").max().alias("last_activity_date"),
        )
        now = to_naive_utc(computed_at)

        return (
            frames.users.rename({"id": "user_id"})
            .join(orders, on="user_id", how="left")
            .join(activities, on="user_id", how="left")
            .with_columns(
                pl.col(
                    "total_orders",
                    "lifetime_value",
                    "total_activities",
                    "page_views",
                    "add_to_cart_count",
                ).fill_null(0),
                # activity stamped after computed_at counts as today
                (
                    (pl.lit(now) - pl.col("last_activity_date")).dt.total_seconds()
                    // SECONDS_PER_DAY
                ).clip(lower_bound=0).alias("days_since_last_activity"),
            )
        )


# Registration order is the refresh order
DEFINITIONS: Tuple[AggregateDefinition, ...] = (
    DailySales(),
    TopProducts(),
    UserEngagement(),
    CategoryRevenue(),
)


def get_definitions(names: Optional[Iterable[str]] = None) -> Dict[str, AggregateDefinition]:
    """
    Look up definitions by name, keeping the requested order.

    Args:
        names: Rollup names to include, all when omitted

    Raises:
        UnknownRollupError: If a name has no definition
    """
    available = {d.name: d for d in DEFINITIONS}
    if names is None:
        return dict(available)

    selected = {}
    for name in names:
        if name not in available:
            raise UnknownRollupError(name)
        selected[name] = available[name]
    return selected
