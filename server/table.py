"""
Table hosting for Cribbage matches.

A Table seats 2-4 players (human or bot) and owns the live hand snapshot
for one match. It is the only place that mutates a snapshot:

    - Commands are serialized per table with an asyncio.Lock.
    - A command may carry the version the client last saw; if the table has
      moved on, the command is rejected instead of applied to a state the
      client never saw.
    - Every committed snapshot is saved to the hand store (compare-and-set
      on version) and written through to the Redis cache, together with
      the seat list so a reloaded table still knows which seats are bots.
    - After each human command the table plays out bot turns and the
      automatic count, so the snapshot always rests on a human decision
      or a finished hand.
"""

import asyncio
import random
import uuid
from dataclasses import dataclass, field
from typing import Optional

from ai import CribbageAI
from commands import Command, apply_command
from config import config
from dealer_selection import DealerSelection, select_dealer
from errors import InvariantViolation
from hand import Settlement, deal_hand, settle_match
from logging_config import get_logger, hand_id_var
from models.events import HandEvent
from models.hand_state import CribbageHandState, CribbagePhase, HandRules
from stores.hand_store import ConcurrencyError, HandStore
from stores.state_cache import StateCache

logger = get_logger(__name__)

# Upper bound on engine steps taken automatically after one command.
# A full four-player hand is well under this.
MAX_AUTOMATIC_STEPS = 200


def default_rules() -> HandRules:
    """Match rules from the server's configured defaults."""
    return HandRules.from_dict(config.cribbage.to_dict())


class StaleCommandError(Exception):
    """Raised when a command was issued against an outdated version."""
    pass


class TableNotFoundError(Exception):
    """Raised when a table ID is not known to this server."""
    pass


class TableLimitError(Exception):
    """Raised when the server is already hosting MAX_TABLES tables."""
    pass


@dataclass
class TableSeat:
    """
    A seat at a table.

    Attributes:
        player_id: Unique player identifier.
        name: Display name.
        is_bot: Whether the seat is played by CribbageAI.
    """

    player_id: str
    name: str = ""
    is_bot: bool = False

    def to_dict(self) -> dict:
        return {"player_id": self.player_id, "name": self.name, "is_bot": self.is_bot}

    @classmethod
    def from_dict(cls, d: dict) -> "TableSeat":
        return cls(
            player_id=d["player_id"],
            name=d.get("name", ""),
            is_bot=d.get("is_bot", False),
        )


@dataclass
class Table:
    """
    A Cribbage table hosting one match.

    Attributes:
        table_id: Unique table identifier.
        seats: Seats in table order.
        rules: Match rules for every hand at this table.
        state: Current hand snapshot (None until started).
        version: Version of the snapshot; bumps on every commit.
        dealer_selection: Record of the high-card draw for the first dealer.
        settlement: Payout report once the match is won.
        last_events: Events produced by the most recent command, bot turns included.
        hand_store: Optional PostgreSQL store.
        state_cache: Optional Redis cache.
        bot_autoplay: Whether bot seats act automatically.
        lock: Serializes commands on this table.
    """

    table_id: str
    seats: list[TableSeat]
    rules: HandRules = field(default_factory=default_rules)
    state: Optional[CribbageHandState] = None
    version: int = 0
    dealer_selection: Optional[DealerSelection] = None
    settlement: Optional[Settlement] = None
    last_events: list[HandEvent] = field(default_factory=list)
    hand_store: Optional[HandStore] = None
    state_cache: Optional[StateCache] = None
    bot_autoplay: bool = True
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def player_ids(self) -> list[str]:
        return [seat.player_id for seat in self.seats]

    def is_bot(self, player_id: str) -> bool:
        return any(s.player_id == player_id and s.is_bot for s in self.seats)

    def seat_records(self) -> list[dict]:
        return [seat.to_dict() for seat in self.seats]

    @property
    def log(self):
        return logger.with_context(
            table_id=self.table_id,
            hand_id=self.state.hand_id if self.state else None,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self, seed: Optional[int] = None) -> list[HandEvent]:
        """
        Draw for the first dealer and deal the first hand.

        Args:
            seed: Optional seed for a reproducible dealer draw and deal.

        Returns:
            Events produced, including any bot discards.
        """
        async with self.lock:
            if self.state is not None:
                raise InvariantViolation(f"Table {self.table_id} already started")

            rng = random.Random(seed) if seed is not None else None
            self.dealer_selection = select_dealer(self.player_ids, rng)
            state = deal_hand(
                self.player_ids,
                self.dealer_selection.dealer_player_id,
                rules=self.rules,
                seed=seed,
            )
            self.last_events = []
            await self._commit(state)
            await self._run_automatic_steps()
            self.log.info(
                f"Table started with {len(self.seats)} seats, "
                f"dealer {self.dealer_selection.dealer_player_id}"
            )
            return list(self.last_events)

    async def apply(
        self,
        command: Command,
        expected_version: Optional[int] = None,
    ) -> list[HandEvent]:
        """
        Apply a player's command, then play out bot turns and counting.

        Args:
            command: The command to apply.
            expected_version: Version the client last saw (None skips the check).

        Returns:
            Every event produced, in order.

        Raises:
            StaleCommandError: expected_version is not the current version.
            IllegalMove: The engine rejected the command (state unchanged).
            ConcurrencyError: Another writer saved first; the table has reloaded.
        """
        async with self.lock:
            if self.state is None:
                raise InvariantViolation(f"Table {self.table_id} has not started")
            if expected_version is not None and expected_version != self.version:
                raise StaleCommandError(
                    f"Table {self.table_id} is at version {self.version}, "
                    f"command was for {expected_version}"
                )

            self.last_events = []
            await self._step(command)
            await self._run_automatic_steps()
            return list(self.last_events)

    async def resume(self) -> list[HandEvent]:
        """Play out bot turns or a count left pending when the table was loaded."""
        async with self.lock:
            if self.state is None:
                raise InvariantViolation(f"Table {self.table_id} has not started")
            self.last_events = []
            await self._run_automatic_steps()
            return list(self.last_events)

    async def next_hand(
        self,
        seed: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> list[HandEvent]:
        """Deal the next hand of the match."""
        return await self.apply(
            Command.new_hand(self.player_ids, seed=seed),
            expected_version=expected_version,
        )

    # -------------------------------------------------------------------------
    # Internals (lock held)
    # -------------------------------------------------------------------------

    async def _step(self, command: Command) -> None:
        try:
            new_state = apply_command(self.state, command)
        except InvariantViolation:
            self.log.with_context(command=command.type.value).error(
                "Engine invariant violated", exc_info=True
            )
            raise
        await self._commit(new_state)

    def _next_automatic_command(self) -> Optional[Command]:
        state = self.state
        if state.phase == CribbagePhase.COUNTING:
            return Command.count_hands()
        if not self.bot_autoplay:
            return None
        for player_id in state.acting_player_ids():
            if self.is_bot(player_id):
                return CribbageAI.choose_bot_command(state, player_id)
        return None

    async def _run_automatic_steps(self) -> None:
        for _ in range(MAX_AUTOMATIC_STEPS):
            command = self._next_automatic_command()
            if command is None:
                return
            await self._step(command)
        raise InvariantViolation(
            f"Table {self.table_id} took more than {MAX_AUTOMATIC_STEPS} automatic steps"
        )

    async def _commit(self, new_state: CribbageHandState) -> None:
        """Persist, cache and adopt a new snapshot."""
        won_now = new_state.winner_player_id is not None and (
            self.state is None
            or self.state.winner_player_id is None
            or self.state.match_id != new_state.match_id
        )

        if self.hand_store is not None:
            try:
                version = await self.hand_store.save_hand(
                    self.table_id, new_state, self.version, seats=self.seat_records()
                )
            except ConcurrencyError:
                self.log.warning(f"Version conflict at {self.version}, reloading")
                await self.reload()
                raise
            await self.hand_store.append_events(new_state.pending_events)
        else:
            version = self.version + 1

        self.state = new_state
        self.version = version
        hand_id_var.set(new_state.hand_id)
        self.last_events.extend(new_state.pending_events)

        if self.state_cache is not None:
            await self.state_cache.save_snapshot(
                self.table_id, new_state, version, seats=self.seat_records()
            )

        if won_now:
            await self._record_win()

    async def _record_win(self) -> None:
        state = self.state
        self.settlement = settle_match(state)
        self.log.info(
            f"Match {state.match_id} won by {state.winner_player_id} "
            f"(loser score {state.loser_score}, x{state.payout_multiplier})"
        )
        if self.hand_store is not None:
            await self.hand_store.record_match_result(
                match_id=state.match_id,
                table_id=self.table_id,
                winner_id=state.winner_player_id,
                loser_score=state.loser_score,
                payout_multiplier=state.payout_multiplier,
                settlement=self.settlement.to_dict(),
            )

    async def reload(self) -> None:
        """Replace the in-memory snapshot with the stored one."""
        if self.hand_store is None:
            return
        loaded = await self.hand_store.load_hand(self.table_id)
        if loaded is None:
            raise TableNotFoundError(self.table_id)
        self.state, self.version, _ = loaded
        if self.state.winner_player_id is not None:
            self.settlement = settle_match(self.state)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def get_view(self, player_id: str) -> dict:
        """Client view of the table for one seat."""
        return {
            "table_id": self.table_id,
            "version": self.version,
            "seats": [seat.to_dict() for seat in self.seats],
            "dealer_selection": (
                self.dealer_selection.to_dict() if self.dealer_selection else None
            ),
            "settlement": self.settlement.to_dict() if self.settlement else None,
            "state": self.state.get_state(player_id) if self.state else None,
        }


class TableManager:
    """
    Manages all live tables on this server.

    A single TableManager instance is used by the server.
    """

    def __init__(
        self,
        hand_store: Optional[HandStore] = None,
        state_cache: Optional[StateCache] = None,
        max_tables: int = config.MAX_TABLES,
        bot_autoplay: bool = config.BOT_AUTOPLAY,
    ) -> None:
        self.tables: dict[str, Table] = {}
        self.hand_store = hand_store
        self.state_cache = state_cache
        self.max_tables = max_tables
        self.bot_autoplay = bot_autoplay

    async def create_table(
        self,
        seats: list[TableSeat],
        rules: Optional[HandRules] = None,
        seed: Optional[int] = None,
    ) -> Table:
        """
        Seat players, draw for dealer and deal the first hand.

        Raises:
            TableLimitError: The server is full.
            ValueError: Bad seat count or duplicate player IDs.
        """
        if len(self.tables) >= self.max_tables:
            raise TableLimitError(f"Server is hosting {self.max_tables} tables")

        table = Table(
            table_id=str(uuid.uuid4()),
            seats=list(seats),
            rules=rules or default_rules(),
            hand_store=self.hand_store,
            state_cache=self.state_cache,
            bot_autoplay=self.bot_autoplay,
        )
        await table.start(seed=seed)
        self.tables[table.table_id] = table
        return table

    async def get_table(self, table_id: str) -> Table:
        """
        Find a live table, loading it from the cache or store if needed.

        Raises:
            TableNotFoundError: Unknown table.
        """
        table = self.tables.get(table_id)
        if table is not None:
            return table

        loaded = None
        if self.state_cache is not None:
            loaded = await self.state_cache.get_snapshot(table_id)
        if loaded is None and self.hand_store is not None:
            loaded = await self.hand_store.load_hand(table_id)
        if loaded is None:
            raise TableNotFoundError(table_id)

        state, version, seat_records = loaded
        if seat_records:
            seats = [TableSeat.from_dict(d) for d in seat_records]
        else:
            seats = [TableSeat(player_id=pid) for pid in state.seating]
        table = Table(
            table_id=table_id,
            seats=seats,
            rules=state.rules,
            state=state,
            version=version,
            hand_store=self.hand_store,
            state_cache=self.state_cache,
            bot_autoplay=self.bot_autoplay,
        )
        if state.winner_player_id is not None:
            table.settlement = settle_match(state)
        self.tables[table_id] = table
        await table.resume()
        return table

    async def remove_table(self, table_id: str) -> None:
        """Forget a table and drop it from the cache."""
        self.tables.pop(table_id, None)
        if self.state_cache is not None:
            await self.state_cache.delete_table(table_id)

    def table_count(self) -> int:
        return len(self.tables)
