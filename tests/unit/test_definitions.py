"""
Unit Tests - Aggregate Definitions
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from rollup_engine.exceptions import UnknownRollupError
from rollup_engine.raw import (
    RawOrder,
    RawOrderItem,
    RawProduct,
    RawSource,
    RawUser,
    RawUserActivity,
)
from rollup_engine.rollups import (
    DEFINITIONS,
    CategoryRevenue,
    DailySales,
    TopProducts,
    UserEngagement,
    get_definitions,
)


class TestRegistry:
    """Tests for definition lookup"""

    def test_registry_order(self):
        """Definitions register in refresh order"""
        assert [d.name for d in DEFINITIONS] == [
            "daily_sales",
            "top_products",
            "user_engagement",
            "category_revenue",
        ]

    def test_get_definitions_keeps_requested_order(self):
        selected = get_definitions(["category_revenue", "daily_sales"])

        assert list(selected) == ["category_revenue", "daily_sales"]

    def test_unknown_definition(self):
        with pytest.raises(UnknownRollupError) as exc_info:
            get_definitions(["weekly_sales"])

        assert exc_info.value.rollup == "weekly_sales"

    def test_columns_follow_row_model(self):
        assert DailySales().columns[0] == "sale_date"
        assert "avg_revenue_per_unit" in TopProducts().columns


class TestDailySales:
    """Tests for the daily_sales rollup"""

    async def test_groups_orders_by_day(self, computer, raw_store):
        snapshot = await computer.compute(DailySales(), raw_store)
        rows = [r.model_dump() for r in snapshot.rows]

        assert rows == [
            {
                "sale_date": date(2024, 1, 2),
                "total_orders": 1,
                "unique_customers": 1,
                "total_revenue": 400.0,
                "average_order_value": 400.0,
                "completed_orders": 1,
                "cancelled_orders": 0,
                "refunded_orders": 0,
            },
            {
                "sale_date": date(2024, 1, 1),
                "total_orders": 2,
                "unique_customers": 2,
                "total_revenue": 800.0,
                "average_order_value": 400.0,
                "completed_orders": 1,
                "cancelled_orders": 1,
                "refunded_orders": 0,
            },
        ]

    async def test_no_orders(self, computer, make_store):
        snapshot = await computer.compute(DailySales(), make_store())

        assert snapshot.rows == ()
        assert snapshot.source_row_count == 0

    async def test_fractional_amounts(self, computer, make_store):
        store = make_store({
            RawSource.ORDERS: [
                RawOrder(id=1, user_id=1, total_amount=Decimal("0.10"), status="completed",
                         order_date=datetime(2024, 3, 1, 9, 0)),
                RawOrder(id=2, user_id=2, total_amount=Decimal("0.20"), status="completed",
                         order_date=datetime(2024, 3, 1, 17, 0)),
            ],
        })

        snapshot = await computer.compute(DailySales(), store)
        row = snapshot.rows[0]

        assert row.total_revenue == 0.3
        assert row.average_order_value == 0.15


class TestTopProducts:
    """Tests for the top_products rollup"""

    async def test_revenue_ties_break_on_product_id(self, computer, raw_store):
        snapshot = await computer.compute(TopProducts(), raw_store)

        assert [(r.product_id, r.total_revenue) for r in snapshot.rows] == [
            (1, 500.0),
            (2, 500.0),
            (3, 200.0),
            (4, 0.0),
        ]

    async def test_product_metrics(self, computer, raw_store):
        snapshot = await computer.compute(TopProducts(), raw_store)
        widget = snapshot.rows[0]

        assert widget.product_name == "Widget"
        assert widget.category == "Electronics"
        assert widget.price == 100.0
        assert widget.times_ordered == 2
        assert widget.total_quantity_sold == 5
        assert widget.avg_quantity_per_order == 2.5
        assert widget.avg_revenue_per_unit == 100.0

    async def test_revenue_per_unit_rounds_to_cents(self, computer, make_store):
        store = make_store({
            RawSource.PRODUCTS: [
                RawProduct(id=1, name="Pencil", category="Office", price=Decimal("3.33")),
            ],
            RawSource.ORDER_ITEMS: [
                RawOrderItem(id=1, order_id=1, product_id=1, quantity=3,
                             unit_price=Decimal("3.33"), subtotal=Decimal("10.00")),
            ],
        })

        snapshot = await computer.compute(TopProducts(), store)

        assert snapshot.rows[0].total_revenue == 10.0
        assert snapshot.rows[0].avg_revenue_per_unit == 3.33

    async def test_unsold_product(self, computer, raw_store):
        """Products without items get zero counts and no averages"""
        snapshot = await computer.compute(TopProducts(), raw_store)
        unsold = snapshot.rows[-1]

        assert unsold.product_id == 4
        assert unsold.times_ordered == 0
        assert unsold.total_quantity_sold == 0
        assert unsold.total_revenue == 0.0
        assert unsold.avg_quantity_per_order is None
        assert unsold.avg_revenue_per_unit is None


class TestCategoryRevenue:
    """Tests for the category_revenue rollup"""

    async def test_categories_sorted_by_revenue(self, computer, raw_store):
        snapshot = await computer.compute(CategoryRevenue(), raw_store)

        assert [(r.category, r.total_revenue) for r in snapshot.rows] == [
            ("Electronics", 1000.0),
            ("Books", 200.0),
            ("Toys", 0.0),
        ]

    async def test_category_metrics(self, computer, raw_store):
        snapshot = await computer.compute(CategoryRevenue(), raw_store)
        electronics = snapshot.rows[0]

        assert electronics.product_count == 2
        assert electronics.total_orders == 3
        assert electronics.total_units_sold == 7
        # 1000.00 over three lines
        assert electronics.avg_revenue_per_order == 333.33
        assert electronics.min_product_price == 100.0
        assert electronics.max_product_price == 250.0

    async def test_average_price_counts_each_product_once(self, computer, raw_store):
        """Widget has two items but its price counts once"""
        snapshot = await computer.compute(CategoryRevenue(), raw_store)

        assert snapshot.rows[0].avg_product_price == pytest.approx(175.0)

    async def test_fractional_averages(self, computer, make_store):
        store = make_store({
            RawSource.PRODUCTS: [
                RawProduct(id=1, name="Eraser", category="Office", price=Decimal("0.10")),
                RawProduct(id=2, name="Pencil", category="Office", price=Decimal("0.20")),
                RawProduct(id=3, name="Clip", category="Office", price=Decimal("0.20")),
            ],
            RawSource.ORDER_ITEMS: [
                RawOrderItem(id=1, order_id=1, product_id=1, quantity=1,
                             unit_price=Decimal("0.10"), subtotal=Decimal("0.10")),
                RawOrderItem(id=2, order_id=2, product_id=1, quantity=1,
                             unit_price=Decimal("0.10"), subtotal=Decimal("0.10")),
                RawOrderItem(id=3, order_id=2, product_id=2, quantity=1,
                             unit_price=Decimal("0.20"), subtotal=Decimal("0.20")),
            ],
        })

        snapshot = await computer.compute(CategoryRevenue(), store)
        office = snapshot.rows[0]

        assert office.total_revenue == 0.4
        assert office.avg_revenue_per_order == 0.13
        assert office.avg_product_price == 0.17

    async def test_category_without_sales(self, computer, raw_store):
        snapshot = await computer.compute(CategoryRevenue(), raw_store)
        toys = snapshot.rows[-1]

        assert toys.product_count == 1
        assert toys.total_orders == 0
        assert toys.total_units_sold == 0
        assert toys.avg_revenue_per_order is None
        assert toys.avg_product_price == 5.0


class TestUserEngagement:
    """Tests for the user_engagement rollup"""

    async def test_users_sorted_by_lifetime_value(self, computer, raw_store):
        snapshot = await computer.compute(UserEngagement(), raw_store)

        assert [(r.user_id, r.lifetime_value) for r in snapshot.rows] == [
            (1, 700.0),
            (2, 500.0),
            (3, 0.0),
        ]

    async def test_order_sums_not_multiplied_by_activities(self, computer, raw_store):
        """Alice has 2 orders and 3 activities"""
        snapshot = await computer.compute(UserEngagement(), raw_store)
        alice = snapshot.rows[0]

        assert alice.total_orders == 2
        assert alice.lifetime_value == 700.0
        assert alice.avg_order_value == 350.0
        assert alice.total_activities == 3
        assert alice.page_views == 2
        assert alice.add_to_cart_count == 1
        assert alice.last_order_date == datetime(2024, 1, 2, 11, 0)
        assert alice.last_activity_date == datetime(2024, 1, 8, 20, 0)

    async def test_days_since_last_activity_floors(self, computer, raw_store):
        snapshot = await computer.compute(UserEngagement(), raw_store)
        alice, bob, _ = snapshot.rows

        # 1 day 16 hours and 23 hours before the fixed clock
        assert alice.days_since_last_activity == 1
        assert bob.days_since_last_activity == 0

    async def test_partial_days_round_down(self, computer, make_store, fixed_now):
        naive_now = fixed_now.replace(tzinfo=None)
        store = make_store({
            RawSource.USERS: [RawUser(id=7, email="dana@example.com", name="Dana")],
            RawSource.USER_ACTIVITIES: [
                RawUserActivity(
                    id=1,
                    user_id=7,
                    activity_type="wishlist_add",
                    occurred_at=naive_now - timedelta(days=2, hours=23),
                ),
            ],
        })

        snapshot = await computer.compute(UserEngagement(), store)

        assert snapshot.rows[0].days_since_last_activity == 2

    async def test_activity_after_computed_at_counts_as_today(self, computer, make_store, fixed_now):
        """Activity stamped a few seconds after computed_at never gives a negative day count"""
        store = make_store({
            RawSource.USERS: [RawUser(id=7, email="dana@example.com", name="Dana")],
            RawSource.USER_ACTIVITIES: [
                RawUserActivity(
                    id=1,
                    user_id=7,
                    activity_type="page_view",
                    occurred_at=fixed_now.replace(tzinfo=None) + timedelta(seconds=5),
                ),
            ],
        })

        snapshot = await computer.compute(UserEngagement(), store)

        assert snapshot.rows[0].days_since_last_activity == 0

    async def test_fractional_order_values(self, computer, make_store):
        store = make_store({
            RawSource.USERS: [RawUser(id=7, email="dana@example.com")],
            RawSource.ORDERS: [
                RawOrder(id=1, user_id=7, total_amount=Decimal("0.10"), status="completed",
                         order_date=datetime(2024, 3, 1, 9, 0)),
                RawOrder(id=2, user_id=7, total_amount=Decimal("0.20"), status="completed",
                         order_date=datetime(2024, 3, 2, 9, 0)),
                RawOrder(id=3, user_id=7, total_amount=Decimal("0.20"), status="pending",
                         order_date=datetime(2024, 3, 3, 9, 0)),
            ],
        })

        snapshot = await computer.compute(UserEngagement(), store)
        dana = snapshot.rows[0]

        assert dana.lifetime_value == 0.5
        assert dana.avg_order_value == 0.17

    async def test_user_without_activity(self, computer, raw_store):
        snapshot = await computer.compute(UserEngagement(), raw_store)
        carol = snapshot.rows[-1]

        assert carol.user_id == 3
        assert carol.total_orders == 0
        assert carol.lifetime_value == 0.0
        assert carol.avg_order_value is None
        assert carol.total_activities == 0
        assert carol.page_views == 0
        assert carol.last_order_date is None
        assert carol.last_activity_date is None
        assert carol.days_since_last_activity is None

    async def test_equal_lifetime_value_breaks_on_user_id(self, computer, make_store):
        store = make_store({
            RawSource.USERS: [
                RawUser(id=9, email="z@example.com"),
                RawUser(id=4, email="y@example.com"),
                RawUser(id=6, email="x@example.com"),
            ],
        })

        snapshot = await computer.compute(UserEngagement(), store)

        assert [r.user_id for r in snapshot.rows] == [4, 6, 9]
