"""
Redis-backed live table snapshot cache.

The state cache keeps the latest snapshot of each live table so any server
process can answer reads without touching PostgreSQL. Redis provides:
- Sub-millisecond reads/writes for live snapshots
- TTL expiration for abandoned tables
- Atomic multi-key writes via pipelines

This is a CACHE, not the source of truth. Snapshots in PostgreSQL are
authoritative; if Redis data is lost, tables reload from the hand store.

Key patterns:
- cribbage:table:{table_id}   -> Hash (hand_id, version, phase, seats, updated_at)
- cribbage:hand:{hand_id}     -> JSON (full hand snapshot)
- cribbage:tables:active      -> Set (live table IDs)
"""

import json
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

import redis.asyncio as redis

from models.hand_state import CribbageHandState

logger = logging.getLogger(__name__)


def _decode(value) -> Optional[str]:
    if value is None:
        return None
    return value.decode() if isinstance(value, bytes) else value


class StateCache:
    """Redis-backed live table snapshot cache."""

    # Key patterns
    TABLE_KEY = "cribbage:table:{table_id}"
    HAND_KEY = "cribbage:hand:{hand_id}"
    ACTIVE_TABLES_KEY = "cribbage:tables:active"

    # A match can sit idle between hands for a while
    TABLE_TTL = timedelta(hours=24)

    def __init__(self, redis_client: redis.Redis):
        """
        Initialize state cache with Redis client.

        Args:
            redis_client: Async Redis client.
        """
        self.redis = redis_client

    @classmethod
    async def create(cls, redis_url: str) -> "StateCache":
        """
        Create a StateCache with a new Redis connection.

        Args:
            redis_url: Redis connection URL.

        Returns:
            Configured StateCache instance.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        # Test connection
        await client.ping()
        logger.info("StateCache connected to Redis")
        return cls(client)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self.redis.close()

    # -------------------------------------------------------------------------
    # Snapshot Operations
    # -------------------------------------------------------------------------

    async def save_snapshot(
        self,
        table_id: str,
        state: CribbageHandState,
        version: int,
        seats: Optional[list[dict]] = None,
    ) -> None:
        """
        Cache a table's latest snapshot.

        Args:
            table_id: Table ID.
            state: Snapshot to cache.
            version: Store version of this snapshot.
            seats: Seat records (player_id, name, is_bot) in table order.
        """
        ttl = int(self.TABLE_TTL.total_seconds())
        table_key = self.TABLE_KEY.format(table_id=table_id)
        hand_key = self.HAND_KEY.format(hand_id=state.hand_id)

        pipe = self.redis.pipeline()
        pipe.hset(
            table_key,
            mapping={
                "hand_id": state.hand_id,
                "match_id": state.match_id,
                "version": str(version),
                "phase": state.phase.value,
                "seats": json.dumps(seats or []),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        pipe.expire(table_key, ttl)
        pipe.set(hand_key, json.dumps(state.to_dict()), ex=ttl)
        pipe.sadd(self.ACTIVE_TABLES_KEY, table_id)
        await pipe.execute()

    async def get_snapshot(
        self, table_id: str
    ) -> Optional[tuple[CribbageHandState, int, list[dict]]]:
        """
        Get a table's cached snapshot.

        Returns:
            (snapshot, version, seats), or None if the table is not cached.
        """
        meta = await self.redis.hgetall(self.TABLE_KEY.format(table_id=table_id))
        if not meta:
            return None
        meta = {_decode(k): _decode(v) for k, v in meta.items()}

        data = await self.redis.get(self.HAND_KEY.format(hand_id=meta["hand_id"]))
        if not data:
            return None
        state = CribbageHandState.from_dict(json.loads(_decode(data)))
        return state, int(meta["version"]), json.loads(meta.get("seats") or "[]")

    async def get_version(self, table_id: str) -> Optional[int]:
        """Cached version for a table, or None if not cached."""
        version = await self.redis.hget(self.TABLE_KEY.format(table_id=table_id), "version")
        return int(_decode(version)) if version is not None else None

    async def delete_table(self, table_id: str) -> None:
        """Drop a table and its cached snapshot."""
        table_key = self.TABLE_KEY.format(table_id=table_id)
        hand_id = await self.redis.hget(table_key, "hand_id")

        pipe = self.redis.pipeline()
        if hand_id is not None:
            pipe.delete(self.HAND_KEY.format(hand_id=_decode(hand_id)))
        pipe.delete(table_key)
        pipe.srem(self.ACTIVE_TABLES_KEY, table_id)
        await pipe.execute()

    async def get_active_tables(self) -> set[str]:
        """IDs of all cached live tables."""
        tables = await self.redis.smembers(self.ACTIVE_TABLES_KEY)
        return {_decode(t) for t in tables}

    async def touch_table(self, table_id: str) -> None:
        """Refresh a table's TTL to keep it alive."""
        await self.redis.expire(
            self.TABLE_KEY.format(table_id=table_id),
            int(self.TABLE_TTL.total_seconds()),
        )


# Global state cache instance
_state_cache: Optional[StateCache] = None


async def get_state_cache(redis_url: str) -> StateCache:
    """
    Get or create the global state cache instance.

    Args:
        redis_url: Redis connection URL.

    Returns:
        StateCache instance.
    """
    global _state_cache
    if _state_cache is None:
        _state_cache = await StateCache.create(redis_url)
    return _state_cache


async def close_state_cache() -> None:
    """Close the global state cache connection."""
    global _state_cache
    if _state_cache is not None:
        await _state_cache.close()
        _state_cache = None
