"""
Raw Transactional Records

Read-only views of the rows the rollups are computed from. The raw store
owns these; the engine never creates or edits them.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class ActivityType(str, Enum):
    """User activity type enumeration"""
    PAGE_VIEW = "page_view"
    SEARCH = "search"
    ADD_TO_CART = "add_to_cart"
    REMOVE_FROM_CART = "remove_from_cart"
    WISHLIST_ADD = "wishlist_add"
    PROFILE_UPDATE = "profile_update"


@dataclass(frozen=True)
class RawUser:
    id: int
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class RawProduct:
    id: int
    name: str
    category: Optional[str]
    price: Decimal


@dataclass(frozen=True)
class RawOrder:
    id: int
    user_id: int
    total_amount: Decimal
    status: str
    order_date: Optional[datetime]


@dataclass(frozen=True)
class RawOrderItem:
    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    # stored value, not recomputed from quantity * unit_price
    subtotal: Decimal


@dataclass(frozen=True)
class RawUserActivity:
    id: int
    user_id: int
    activity_type: str
    occurred_at: Optional[datetime]
