"""
Rollup Row Models

One frozen model per rollup. Rows are derived entirely from raw data at
refresh time; counts and sums are never null, averages and ratios are
None when there is nothing to average.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class RollupRow(BaseModel):
    """Base class for all rollup rows"""

    model_config = ConfigDict(frozen=True)


class DailySalesRow(RollupRow):
    """Orders aggregated per calendar day"""
    sale_date: date
    total_orders: int
    unique_customers: int
    total_revenue: float
    average_order_value: Optional[float] = None
    completed_orders: int
    cancelled_orders: int
    refunded_orders: int


class TopProductRow(RollupRow):
    """Sales aggregated per product"""
    product_id: int
    product_name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None
    times_ordered: int
    total_quantity_sold: int
    total_revenue: float
    avg_quantity_per_order: Optional[float] = None
    avg_revenue_per_unit: Optional[float] = None


class CategoryRevenueRow(RollupRow):
    """Sales and catalog prices aggregated per category"""
    category: Optional[str] = None
    product_count: int
    total_orders: int
    total_units_sold: int
    total_revenue: float
    avg_revenue_per_order: Optional[float] = None
    min_product_price: Optional[float] = None
    max_product_price: Optional[float] = None
    avg_product_price: Optional[float] = None


class UserEngagementRow(RollupRow):
    """Orders and activity aggregated per user"""
    user_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    total_orders: int
    lifetime_value: float
    avg_order_value: Optional[float] = None
    total_activities: int
    page_views: int
    add_to_cart_count: int
    last_order_date: Optional[datetime] = None
    last_activity_date: Optional[datetime] = None
    days_since_last_activity: Optional[int] = None
