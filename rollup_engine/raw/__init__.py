"""
Raw Data Access Module
"""
from .accessor import InMemoryRawStore, RawDataAccessor, RawReader, RawSource
from .records import (
    ActivityType,
    OrderStatus,
    RawOrder,
    RawOrderItem,
    RawProduct,
    RawUser,
    RawUserActivity,
)
from .sql import SqlRawStore

__all__ = [
    "InMemoryRawStore",
    "RawDataAccessor",
    "RawReader",
    "RawSource",
    "SqlRawStore",
    "ActivityType",
    "OrderStatus",
    "RawOrder",
    "RawOrderItem",
    "RawProduct",
    "RawUser",
    "RawUserActivity",
]
