"""
Redis Snapshot Cache

Durable copy of the current rollup snapshots so a restarted process can
serve the last computed results before its first refresh finishes.
Each snapshot is stored as one JSON document under
`rollups:snapshot:{name}`.
"""

import json
from typing import Optional, Type

import structlog
from redis.asyncio import ConnectionPool, Redis

from rollup_engine.config import get_settings
from rollup_engine.rollups import RollupRow, Snapshot, SnapshotPersistence

logger = structlog.get_logger(__name__)
settings = get_settings()

SNAPSHOT_NAMESPACE = "rollups:snapshot"

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
    )
    client = Redis(connection_pool=_redis_pool)

    try:
        await client.ping()
    except Exception as e:
        logger.error("Redis connection failed", error=str(e))
        await _redis_pool.disconnect()
        _redis_pool = None
        raise

    _redis_client = client
    logger.info("Redis connection established")
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


class SnapshotCache(SnapshotPersistence):
    """
    Snapshot persistence on Redis.

    Example:
        cache = SnapshotCache()
        await cache.save(snapshot)
        snapshot = await cache.load("daily_sales", DailySalesRow)
    """

    def __init__(self, client: Optional[Redis] = None, namespace: str = SNAPSHOT_NAMESPACE):
        self._client = client
        self.namespace = namespace

    def _redis(self) -> Redis:
        return self._client if self._client is not None else get_redis()

    def _key(self, name: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{name}"

    async def save(self, snapshot: Snapshot) -> None:
        await self._redis().set(self._key(snapshot.name), json.dumps(snapshot.to_payload()))
        logger.debug("Snapshot persisted", rollup=snapshot.name, row_count=snapshot.row_count)

    async def load(self, name: str, row_model: Type[RollupRow]) -> Optional[Snapshot]:
        value = await self._redis().get(self._key(name))
        if value is None:
            return None
        return Snapshot.from_payload(json.loads(value), row_model)

    async def delete(self, name: str) -> bool:
        """Drop the persisted snapshot of a rollup"""
        return await self._redis().delete(self._key(name)) > 0
