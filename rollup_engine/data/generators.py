"""
Synthetic Data Generator

Generates raw storefront data for development and tests:
- Users with sequential emails
- Products across the storefront categories
- Orders with 2-5 line items, totals summed from the items
- User activity events

Output rows match the raw table columns, so the same dataset can be
inserted into the database or loaded into the in-memory raw store.
Generation is fully determined by the seed and the reference time.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import numpy as np
from faker import Faker

from rollup_engine.config import get_settings
from rollup_engine.raw import (
    InMemoryRawStore,
    RawOrder,
    RawOrderItem,
    RawProduct,
    RawSource,
    RawUser,
    RawUserActivity,
)

settings = get_settings()


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = ["Electronics", "Clothing", "Books", "Home & Garden", "Sports", "Toys", "Food", "Beauty"]
STATUSES = ["pending", "processing", "completed", "cancelled", "refunded"]
ACTIVITY_TYPES = ["page_view", "search", "add_to_cart", "remove_from_cart", "wishlist_add", "profile_update"]
DEVICES = ["mobile", "desktop", "tablet"]
BROWSERS = ["Chrome", "Firefox", "Safari", "Edge"]

CENT = Decimal("0.01")


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(CENT)


@dataclass
class SyntheticDataset:
    """Generated rows per raw table"""
    users: List[Dict[str, Any]] = field(default_factory=list)
    products: List[Dict[str, Any]] = field(default_factory=list)
    orders: List[Dict[str, Any]] = field(default_factory=list)
    order_items: List[Dict[str, Any]] = field(default_factory=list)
    user_activities: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "users": len(self.users),
            "products": len(self.products),
            "orders": len(self.orders),
            "order_items": len(self.order_items),
            "user_activities": len(self.user_activities),
        }

    def to_records(self) -> Dict[RawSource, list]:
        """Raw records as the rollup engine reads them"""
        return {
            RawSource.USERS: [
                RawUser(id=u["id"], email=u["email"], name=u["name"]) for u in self.users
            ],
            RawSource.PRODUCTS: [
                RawProduct(id=p["id"], name=p["name"], category=p["category"], price=p["price"])
                for p in self.products
            ],
            RawSource.ORDERS: [
                RawOrder(
                    id=o["id"],
                    user_id=o["user_id"],
                    total_amount=o["total_amount"],
                    status=o["status"],
                    order_date=o["order_date"],
                )
                for o in self.orders
            ],
            RawSource.ORDER_ITEMS: [
                RawOrderItem(
                    id=i["id"],
                    order_id=i["order_id"],
                    product_id=i["product_id"],
                    quantity=i["quantity"],
                    unit_price=i["unit_price"],
                    subtotal=i["subtotal"],
                )
                for i in self.order_items
            ],
            RawSource.USER_ACTIVITIES: [
                RawUserActivity(
                    id=a["id"],
                    user_id=a["user_id"],
                    activity_type=a["activity_type"],
                    occurred_at=a["occurred_at"],
                )
                for a in self.user_activities
            ],
        }

    def load_into(self, store: InMemoryRawStore) -> None:
        """Append every generated record to an in-memory raw store"""
        records = self.to_records()
        store.add_users(records[RawSource.USERS])
        store.add_products(records[RawSource.PRODUCTS])
        store.add_orders(records[RawSource.ORDERS])
        store.add_order_items(records[RawSource.ORDER_ITEMS])
        store.add_user_activities(records[RawSource.USER_ACTIVITIES])


# =============================================================================
# GENERATOR
# =============================================================================

class DataGenerator:
    """
    Generate a consistent raw dataset.

    Example:
        dataset = DataGenerator(seed=7).generate(users_count=50, products_count=20)
        dataset.load_into(store)
    """

    def __init__(self, seed: Optional[int] = None, now: Optional[datetime] = None):
        self.seed = settings.seed.seed if seed is None else seed
        now = now or datetime.now(timezone.utc)
        # raw tables store naive UTC timestamps
        self.now = now.astimezone(timezone.utc).replace(tzinfo=None) if now.tzinfo else now

        self.fake = Faker()
        self.fake.seed_instance(self.seed)
        self.random = random.Random(self.seed)
        self.rng = np.random.default_rng(self.seed)

    def _between(self, start: datetime, end: datetime) -> datetime:
        return self.fake.date_time_between(start_date=start, end_date=end).replace(microsecond=0)

    def generate_products(self, n: int) -> List[Dict[str, Any]]:
        products = []
        for product_id in range(1, n + 1):
            products.append({
                "id": product_id,
                "name": f"{self.fake.word().title()} {self.fake.word().title()}",
                "description": self.fake.paragraph(nb_sentences=3),
                "price": _money(round(float(self.rng.uniform(10.0, 1000.0)), 2)),
                "sku": f"SKU-{product_id:08d}",
                "category": self.random.choice(CATEGORIES),
                "created_at": self._between(self.now - timedelta(days=730), self.now),
            })
        return products

    def generate_users(self, n: int) -> List[Dict[str, Any]]:
        users = []
        for index in range(n):
            users.append({
                "id": index + 1,
                "email": f"user{index}@example.com",
                "name": self.fake.name(),
                "created_at": self._between(
                    self.now - timedelta(days=730), self.now - timedelta(days=30)
                ),
            })
        return users

    def generate_orders(
        self,
        users: List[Dict[str, Any]],
        products: List[Dict[str, Any]],
        orders_per_user: int,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Orders and their items; order totals are the sum of item subtotals"""
        orders: List[Dict[str, Any]] = []
        items: List[Dict[str, Any]] = []
        if not products:
            return {"orders": orders, "order_items": items}

        start = self.now - timedelta(days=365)
        for user in users:
            for _ in range(orders_per_user):
                order_id = len(orders) + 1
                order_date = self._between(start, self.now)

                order_total = Decimal("0.00")
                for _ in range(int(self.rng.integers(2, 6))):
                    product = products[int(self.rng.integers(0, len(products)))]
                    quantity = int(self.rng.integers(1, 4))
                    subtotal = product["price"] * quantity
                    order_total += subtotal
                    items.append({
                        "id": len(items) + 1,
                        "order_id": order_id,
                        "product_id": product["id"],
                        "quantity": quantity,
                        "unit_price": product["price"],
                        "subtotal": subtotal,
                        "created_at": order_date,
                    })

                orders.append({
                    "id": order_id,
                    "user_id": user["id"],
                    "total_amount": order_total,
                    "status": self.random.choice(STATUSES),
                    "order_date": order_date,
                    "created_at": order_date,
                })

        return {"orders": orders, "order_items": items}

    def generate_activities(
        self,
        users: List[Dict[str, Any]],
        activities_per_user: int,
    ) -> List[Dict[str, Any]]:
        activities = []
        start = self.now - timedelta(days=182)
        for user in users:
            for _ in range(activities_per_user):
                occurred_at = self._between(start, self.now)
                activities.append({
                    "id": len(activities) + 1,
                    "user_id": user["id"],
                    "activity_type": self.random.choice(ACTIVITY_TYPES),
                    "metadata_": {
                        "page": self.fake.url(),
                        "device": self.random.choice(DEVICES),
                        "browser": self.random.choice(BROWSERS),
                        "duration": int(self.rng.integers(5, 301)),
                    },
                    "occurred_at": occurred_at,
                    "created_at": occurred_at,
                })
        return activities

    def generate(
        self,
        users_count: Optional[int] = None,
        products_count: Optional[int] = None,
        orders_per_user: Optional[int] = None,
        activities_per_user: Optional[int] = None,
    ) -> SyntheticDataset:
        """Generate all raw tables, volumes default to the seed settings"""
        seed_settings = settings.seed
        products = self.generate_products(
            seed_settings.products_count if products_count is None else products_count
        )
        users = self.generate_users(
            seed_settings.users_count if users_count is None else users_count
        )
        sales = self.generate_orders(
            users,
            products,
            seed_settings.orders_per_user if orders_per_user is None else orders_per_user,
        )
        activities = self.generate_activities(
            users,
            seed_settings.activities_per_user if activities_per_user is None else activities_per_user,
        )

        return SyntheticDataset(
            users=users,
            products=products,
            orders=sales["orders"],
            order_items=sales["order_items"],
            user_activities=activities,
        )
