"""
Serving Layer
"""
from .cache import SnapshotCache, close_redis, get_redis, init_redis

__all__ = [
    "SnapshotCache",
    "close_redis",
    "get_redis",
    "init_redis",
]
