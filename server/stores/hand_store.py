"""
PostgreSQL-backed store for Cribbage tables.

Three tables:
- cribbage_snapshots: the latest hand snapshot and seat list per table, with
  a version column for optimistic concurrency (compare-and-set on save)
- cribbage_events: append-only hand history, deduplicated on
  (hand_id, sequence_num) so replaying a command never doubles events
- cribbage_match_results: one row per match; the primary key on match_id
  is the idempotency key that keeps a win from being settled twice
"""

import json
import logging
from typing import Optional

import asyncpg

from models.events import EventType, HandEvent
from models.hand_state import CribbageHandState

logger = logging.getLogger(__name__)


class ConcurrencyError(Exception):
    """Raised when optimistic concurrency check fails."""
    pass


# SQL schema for the hand store
SCHEMA_SQL = """
-- Latest snapshot per table (source of truth for live tables)
CREATE TABLE IF NOT EXISTS cribbage_snapshots (
    table_id VARCHAR(64) PRIMARY KEY,
    hand_id UUID NOT NULL,
    match_id UUID NOT NULL,
    phase VARCHAR(20) NOT NULL,
    version INT NOT NULL,
    snapshot JSONB NOT NULL,
    seats JSONB NOT NULL DEFAULT '[]',
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

-- Hand history (append-only log)
CREATE TABLE IF NOT EXISTS cribbage_events (
    id BIGSERIAL PRIMARY KEY,
    hand_id UUID NOT NULL,
    sequence_num INT NOT NULL,
    event_type VARCHAR(50) NOT NULL,
    player_id VARCHAR(64),
    points INT NOT NULL DEFAULT 0,
    label VARCHAR(100) NOT NULL DEFAULT '',
    event_data JSONB NOT NULL,
    created_at TIMESTAMPTZ DEFAULT NOW(),

    UNIQUE(hand_id, sequence_num)
);

-- Match results (one per match)
CREATE TABLE IF NOT EXISTS cribbage_match_results (
    match_id UUID PRIMARY KEY,
    table_id VARCHAR(64) NOT NULL,
    winner_id VARCHAR(64) NOT NULL,
    loser_score INT NOT NULL,
    payout_multiplier INT NOT NULL,
    settlement JSONB NOT NULL,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

ALTER TABLE cribbage_snapshots ADD COLUMN IF NOT EXISTS seats JSONB NOT NULL DEFAULT '[]';

CREATE INDEX IF NOT EXISTS idx_cribbage_events_hand ON cribbage_events(hand_id, sequence_num);
CREATE INDEX IF NOT EXISTS idx_cribbage_events_player ON cribbage_events(player_id) WHERE player_id IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_cribbage_results_winner ON cribbage_match_results(winner_id);
"""


class HandStore:
    """
    PostgreSQL-backed snapshot and history store.

    Uses asyncpg for async database access.
    """

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize hand store with connection pool.

        Args:
            pool: asyncpg connection pool.
        """
        self.pool = pool

    @classmethod
    async def create(cls, postgres_url: str) -> "HandStore":
        """
        Create a HandStore with a new connection pool.

        Args:
            postgres_url: PostgreSQL connection URL.

        Returns:
            Configured HandStore instance.
        """
        pool = await asyncpg.create_pool(postgres_url, min_size=2, max_size=10)
        store = cls(pool)
        await store.initialize_schema()
        return store

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Hand store schema initialized")

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    async def save_hand(
        self,
        table_id: str,
        state: CribbageHandState,
        expected_version: int,
        seats: Optional[list[dict]] = None,
    ) -> int:
        """
        Store a table's snapshot if nobody else has written since expected_version.

        Args:
            table_id: Table the snapshot belongs to.
            state: The new snapshot.
            expected_version: Version the caller last read (0 for a new table).
            seats: Seat records (player_id, name, is_bot) in table order.

        Returns:
            The new version number.

        Raises:
            ConcurrencyError: Another writer stored a newer snapshot first.
        """
        snapshot = json.dumps(state.to_dict())
        seat_data = json.dumps(seats or [])
        async with self.pool.acquire() as conn:
            if expected_version == 0:
                row = await conn.fetchrow(
                    """
                    INSERT INTO cribbage_snapshots (table_id, hand_id, match_id, phase, version, snapshot, seats)
                    VALUES ($1, $2, $3, $4, 1, $5, $6)
                    ON CONFLICT (table_id) DO NOTHING
                    RETURNING version
                    """,
                    table_id,
                    state.hand_id,
                    state.match_id,
                    state.phase.value,
                    snapshot,
                    seat_data,
                )
            else:
                row = await conn.fetchrow(
                    """
                    UPDATE cribbage_snapshots
                    SET hand_id = $2, match_id = $3, phase = $4, snapshot = $5, seats = $6,
                        version = version + 1, updated_at = NOW()
                    WHERE table_id = $1 AND version = $7
                    RETURNING version
                    """,
                    table_id,
                    state.hand_id,
                    state.match_id,
                    state.phase.value,
                    snapshot,
                    seat_data,
                    expected_version,
                )

        if row is None:
            raise ConcurrencyError(
                f"Table {table_id} changed since version {expected_version}"
            )
        return row["version"]

    async def load_hand(
        self, table_id: str
    ) -> Optional[tuple[CribbageHandState, int, list[dict]]]:
        """
        Load a table's latest snapshot.

        Returns:
            (snapshot, version, seats), or None if the table is unknown.
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT snapshot, version, seats
                FROM cribbage_snapshots
                WHERE table_id = $1
                """,
                table_id,
            )
        if row is None:
            return None
        return (
            CribbageHandState.from_dict(json.loads(row["snapshot"])),
            row["version"],
            json.loads(row["seats"]),
        )

    # -------------------------------------------------------------------------
    # Hand History
    # -------------------------------------------------------------------------

    async def append_events(self, events: list[HandEvent]) -> int:
        """
        Append events, skipping any (hand_id, sequence_num) already stored.

        All events are inserted in a single transaction.

        Returns:
            Number of events actually inserted.
        """
        if not events:
            return 0

        inserted = 0
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                for event in events:
                    status = await conn.execute(
                        """
                        INSERT INTO cribbage_events
                            (hand_id, sequence_num, event_type, player_id, points, label, event_data)
                        VALUES ($1, $2, $3, $4, $5, $6, $7)
                        ON CONFLICT (hand_id, sequence_num) DO NOTHING
                        """,
                        event.hand_id,
                        event.sequence_num,
                        event.event_type.value,
                        event.player_id,
                        event.points,
                        event.label,
                        json.dumps(event.data),
                    )
                    # asyncpg returns the command tag, e.g. "INSERT 0 1"
                    if status.endswith(" 1"):
                        inserted += 1
        return inserted

    async def get_events(self, hand_id: str, from_sequence: int = 0) -> list[HandEvent]:
        """
        Get a hand's events in sequence order.

        Args:
            hand_id: Hand UUID.
            from_sequence: Start sequence (inclusive).
        """
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT event_type, hand_id, sequence_num, player_id, points, label, event_data
                FROM cribbage_events
                WHERE hand_id = $1 AND sequence_num >= $2
                ORDER BY sequence_num
                """,
                hand_id,
                from_sequence,
            )
        return [self._row_to_event(row) for row in rows]

    # -------------------------------------------------------------------------
    # Match Results
    # -------------------------------------------------------------------------

    async def record_match_result(
        self,
        match_id: str,
        table_id: str,
        winner_id: str,
        loser_score: int,
        payout_multiplier: int,
        settlement: dict,
    ) -> bool:
        """
        Record a match win exactly once.

        Returns:
            True if this call recorded the result, False if it already existed.
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO cribbage_match_results
                    (match_id, table_id, winner_id, loser_score, payout_multiplier, settlement)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (match_id) DO NOTHING
                RETURNING match_id
                """,
                match_id,
                table_id,
                winner_id,
                loser_score,
                payout_multiplier,
                json.dumps(settlement),
            )
        if row is None:
            logger.info(f"Match {match_id} result already recorded, skipping")
            return False
        return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _row_to_event(self, row: asyncpg.Record) -> HandEvent:
        """Convert a database row to a HandEvent."""
        return HandEvent(
            event_type=EventType(row["event_type"]),
            hand_id=str(row["hand_id"]),
            sequence_num=row["sequence_num"],
            player_id=row["player_id"],
            points=row["points"],
            label=row["label"],
            data=json.loads(row["event_data"]) if row["event_data"] else {},
        )


# Global hand store instance (initialized on first use)
_hand_store: Optional[HandStore] = None


async def get_hand_store(postgres_url: str) -> HandStore:
    """
    Get or create the global hand store instance.

    Args:
        postgres_url: PostgreSQL connection URL.

    Returns:
        HandStore instance.
    """
    global _hand_store
    if _hand_store is None:
        _hand_store = await HandStore.create(postgres_url)
    return _hand_store


async def close_hand_store() -> None:
    """Close the global hand store connection pool."""
    global _hand_store
    if _hand_store is not None:
        await _hand_store.close()
        _hand_store = None
