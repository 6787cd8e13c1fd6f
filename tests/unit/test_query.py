"""
Unit Tests - Query Interface
"""
from datetime import date, timedelta

import pytest

from rollup_engine.exceptions import UnknownRollupError
from rollup_engine.rollups import RollupQuery


class TestList:
    """Tests for paged listing"""

    def test_uninitialized_rollup_reads_empty(self, engine):
        page = engine.query.list("daily_sales")

        assert page.initialized is False
        assert page.rows == []
        assert page.total == 0
        assert page.computed_at is None

    def test_unknown_rollup(self, engine):
        with pytest.raises(UnknownRollupError):
            engine.query.list("weekly_sales")

    async def test_pagination(self, engine, fixed_now):
        await engine.coordinator.refresh_one("top_products")

        page = engine.query.list("top_products", limit=2, offset=1)

        assert page.initialized is True
        assert [r.product_id for r in page.rows] == [2, 3]
        assert page.total == 4
        assert page.limit == 2
        assert page.offset == 1
        assert page.computed_at == fixed_now

    async def test_offset_past_end(self, engine):
        await engine.coordinator.refresh_one("top_products")

        page = engine.query.list("top_products", limit=10, offset=10)

        assert page.rows == []
        assert page.total == 4

    async def test_limit_clamped_to_maximum(self, engine):
        await engine.coordinator.refresh_one("top_products")
        query = RollupQuery(engine.store, max_page_size=3)

        page = query.list("top_products", limit=100)

        assert page.limit == 3
        assert len(page.rows) == 3

    @pytest.mark.parametrize("limit,offset", [(-1, 0), (10, -1)])
    def test_negative_paging_rejected(self, engine, limit, offset):
        with pytest.raises(ValueError):
            engine.query.list("daily_sales", limit=limit, offset=offset)

    async def test_reads_do_not_change_snapshot(self, engine):
        await engine.coordinator.refresh_one("daily_sales")
        snapshot = engine.store.get_current("daily_sales")

        page = engine.query.list("daily_sales")
        page.rows.clear()

        assert engine.store.get_current("daily_sales") is snapshot
        assert snapshot.row_count == 2


class TestSummary:
    """Tests for rollup summaries"""

    def test_uninitialized(self, engine):
        summary = engine.query.summary("user_engagement")

        assert summary.initialized is False
        assert summary.row_count == 0
        assert summary.staleness is None

    async def test_staleness(self, engine, fixed_now):
        await engine.coordinator.refresh_one("user_engagement")
        query = RollupQuery(engine.store, clock=lambda: fixed_now + timedelta(minutes=5))

        summary = query.summary("user_engagement")

        assert summary.initialized is True
        assert summary.row_count == 3
        assert summary.source_row_count == 3 + 3 + 4
        assert summary.staleness == timedelta(minutes=5)

    async def test_summaries_cover_every_rollup(self, engine):
        await engine.coordinator.refresh_one("daily_sales")

        summaries = {s.rollup: s for s in engine.query.summaries()}

        assert list(summaries) == engine.store.names()
        assert summaries["daily_sales"].initialized is True
        assert summaries["top_products"].initialized is False


class TestDashboard:
    """Tests for the dashboard overview"""

    def test_empty_before_refresh(self, engine):
        dashboard = engine.query.dashboard()

        assert dashboard.daily_sales == []
        assert dashboard.total_revenue == 0.0
        assert dashboard.total_orders == 0
        assert dashboard.row_counts == {name: 0 for name in engine.store.names()}

    async def test_totals_cover_listed_days(self, engine):
        await engine.coordinator.refresh_all()

        dashboard = engine.query.dashboard(days=1)

        assert [r.sale_date for r in dashboard.daily_sales] == [date(2024, 1, 2)]
        assert dashboard.total_revenue == 400.0
        assert dashboard.total_orders == 1

    async def test_default_window(self, engine, fixed_now):
        await engine.coordinator.refresh_all()

        dashboard = engine.query.dashboard()

        assert dashboard.total_revenue == 1200.0
        assert dashboard.total_orders == 3
        assert len(dashboard.categories) == 3
        assert dashboard.row_counts["top_products"] == 4
        assert dashboard.computed_at["daily_sales"] == fixed_now

    async def test_top_limits_products_and_users(self, engine):
        await engine.coordinator.refresh_all()

        dashboard = engine.query.dashboard(top=2)

        assert [r.product_id for r in dashboard.top_products] == [1, 2]
        assert [r.user_id for r in dashboard.top_users] == [1, 2]

    def test_negative_window_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.query.dashboard(days=-1)
