"""
Snapshot model for a single Cribbage hand.

A CribbageHandState is the aggregate every engine operation consumes and
returns. It must survive a round trip through a JSON-compatible dict so the
host can persist it and rebroadcast it to every client at the table:

    data = state.to_dict()
    restored = CribbageHandState.from_dict(data)
    assert restored.to_dict() == data

Engine operations never mutate the snapshot they were given. They work on
state.copy() and return the copy, so a failed command leaves the caller's
snapshot exactly as it was.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from cards import Card, cards_from_dicts, cards_to_dicts
from constants import (
    DEFAULT_ANTE,
    DISCARD_COUNT,
    DOUBLE_SKUNK_MULTIPLIER,
    DOUBLE_SKUNK_THRESHOLD,
    POINTS_TO_WIN,
    SKUNK_MULTIPLIER,
    SKUNK_THRESHOLD,
)
from models.events import EventType, HandEvent
from scoring import HandScore, ScoringCombo, can_play_card, has_playable_card


class CribbagePhase(str, Enum):
    """
    Phases of a Cribbage hand.

    Flow: CUTTING -> DISCARDING -> PEGGING -> COUNTING -> COMPLETE
    A match win during any phase jumps straight to COMPLETE.
    """

    CUTTING = "cutting"        # Shuffle and deal
    DISCARDING = "discarding"  # Players send cards to the crib
    PEGGING = "pegging"        # Play cards toward 31
    COUNTING = "counting"      # Hands and crib are scored
    COMPLETE = "complete"      # Hand settled (or match won)

    @property
    def display_name(self) -> str:
        return {
            CribbagePhase.CUTTING: "Cut Card",
            CribbagePhase.DISCARDING: "Discard to Crib",
            CribbagePhase.PEGGING: "Pegging",
            CribbagePhase.COUNTING: "Counting Hands",
            CribbagePhase.COMPLETE: "Complete",
        }[self]


@dataclass
class HandRules:
    """
    Match rules carried with every hand.

    Attributes:
        points_to_win: Score that ends the match (usually 121).
        skunk_enabled: Whether a loser below skunk_threshold pays double.
        skunk_threshold: Loser score strictly below this is a skunk.
        double_skunk_enabled: Whether a loser below double_skunk_threshold pays triple.
        double_skunk_threshold: Loser score strictly below this is a double skunk.
        ante_amount: Base amount each loser pays the winner.
    """

    points_to_win: int = POINTS_TO_WIN
    skunk_enabled: bool = True
    skunk_threshold: int = SKUNK_THRESHOLD
    double_skunk_enabled: bool = True
    double_skunk_threshold: int = DOUBLE_SKUNK_THRESHOLD
    ante_amount: int = DEFAULT_ANTE

    def to_dict(self) -> dict:
        return {
            "points_to_win": self.points_to_win,
            "skunk_enabled": self.skunk_enabled,
            "skunk_threshold": self.skunk_threshold,
            "double_skunk_enabled": self.double_skunk_enabled,
            "double_skunk_threshold": self.double_skunk_threshold,
            "ante_amount": self.ante_amount,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "HandRules":
        defaults = cls()
        return cls(
            points_to_win=d.get("points_to_win", defaults.points_to_win),
            skunk_enabled=d.get("skunk_enabled", defaults.skunk_enabled),
            skunk_threshold=d.get("skunk_threshold", defaults.skunk_threshold),
            double_skunk_enabled=d.get("double_skunk_enabled", defaults.double_skunk_enabled),
            double_skunk_threshold=d.get("double_skunk_threshold", defaults.double_skunk_threshold),
            ante_amount=d.get("ante_amount", defaults.ante_amount),
        )


def compute_payout_multiplier(loser_score: int, rules: HandRules) -> int:
    """
    Payout multiplier from the losing score at the moment of the win.

    Thresholds are strict: with a skunk line of 91, a loser on 90 is
    skunked and a loser on 91 is not.
    """
    if rules.double_skunk_enabled and loser_score < rules.double_skunk_threshold:
        return DOUBLE_SKUNK_MULTIPLIER
    if rules.skunk_enabled and loser_score < rules.skunk_threshold:
        return SKUNK_MULTIPLIER
    return 1


@dataclass
class PlayedCard:
    """A card laid during pegging and who laid it."""

    player_id: str
    card: Card

    def to_dict(self) -> dict:
        return {"player_id": self.player_id, "card": self.card.to_dict()}

    @classmethod
    def from_dict(cls, d: dict) -> "PlayedCard":
        return cls(player_id=d["player_id"], card=Card.from_dict(d["card"]))


@dataclass
class PeggingState:
    """
    Pegging progress for the current hand.

    Attributes:
        played_cards: Every card laid this hand, in order (spans count resets).
        current_count: Running count, 0-31.
        current_turn_player_id: Seat that must play or call Go.
        sequence_start_index: Index into played_cards where the active count began.
        last_to_play: Seat that laid the most recent card in the active count.
        go_called_by: Seats that have said Go during the active count.
    """

    played_cards: list[PlayedCard] = field(default_factory=list)
    current_count: int = 0
    current_turn_player_id: Optional[str] = None
    sequence_start_index: int = 0
    last_to_play: Optional[str] = None
    go_called_by: list[str] = field(default_factory=list)

    def active_cards(self) -> list[Card]:
        """Cards laid since the count last reset to 0."""
        return [pc.card for pc in self.played_cards[self.sequence_start_index:]]

    def to_dict(self) -> dict:
        return {
            "played_cards": [pc.to_dict() for pc in self.played_cards],
            "current_count": self.current_count,
            "current_turn_player_id": self.current_turn_player_id,
            "sequence_start_index": self.sequence_start_index,
            "last_to_play": self.last_to_play,
            "go_called_by": list(self.go_called_by),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PeggingState":
        return cls(
            played_cards=[PlayedCard.from_dict(pc) for pc in d.get("played_cards", [])],
            current_count=d.get("current_count", 0),
            current_turn_player_id=d.get("current_turn_player_id"),
            sequence_start_index=d.get("sequence_start_index", 0),
            last_to_play=d.get("last_to_play"),
            go_called_by=list(d.get("go_called_by", [])),
        )


@dataclass
class PlayerHandState:
    """
    One seat's state for the current hand.

    Attributes:
        player_id: Unique identifier for the player.
        hand: Cards currently held.
        kept_cards: The hand kept after discarding (the cards counted later).
        discarded_to_crib: Cards this seat sent to the crib.
        peg_score: Match total on the board; carries over between hands.
    """

    player_id: str
    hand: list[Card] = field(default_factory=list)
    kept_cards: list[Card] = field(default_factory=list)
    discarded_to_crib: list[Card] = field(default_factory=list)
    peg_score: int = 0

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "hand": cards_to_dicts(self.hand),
            "kept_cards": cards_to_dicts(self.kept_cards),
            "discarded_to_crib": cards_to_dicts(self.discarded_to_crib),
            "peg_score": self.peg_score,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PlayerHandState":
        return cls(
            player_id=d["player_id"],
            hand=cards_from_dicts(d.get("hand", [])),
            kept_cards=cards_from_dicts(d.get("kept_cards", [])),
            discarded_to_crib=cards_from_dicts(d.get("discarded_to_crib", [])),
            peg_score=d.get("peg_score", 0),
        )


@dataclass
class CountStep:
    """One hand (or the crib) applied during counting."""

    player_id: str
    kind: str  # "hand" or "crib"
    combos: list[ScoringCombo]
    points: int
    score_before: int
    score_after: int

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "kind": self.kind,
            "combos": [c.to_dict() for c in self.combos],
            "breakdown": HandScore.from_combos(self.combos).__dict__,
            "points": self.points,
            "score_before": self.score_before,
            "score_after": self.score_after,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CountStep":
        return cls(
            player_id=d["player_id"],
            kind=d["kind"],
            combos=[ScoringCombo.from_dict(c) for c in d.get("combos", [])],
            points=d["points"],
            score_before=d["score_before"],
            score_after=d["score_after"],
        )


@dataclass
class HandCount:
    """
    Pre- and post-counting totals for a hand.

    Consumers read baseline_scores for the board before counting and each
    step's deltas for the animation, instead of re-deriving them from the
    final scores.
    """

    baseline_scores: dict[str, int] = field(default_factory=dict)
    steps: list[CountStep] = field(default_factory=list)
    final_scores: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "baseline_scores": dict(self.baseline_scores),
            "steps": [s.to_dict() for s in self.steps],
            "final_scores": dict(self.final_scores),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "HandCount":
        return cls(
            baseline_scores=dict(d.get("baseline_scores", {})),
            steps=[CountStep.from_dict(s) for s in d.get("steps", [])],
            final_scores=dict(d.get("final_scores", {})),
        )


@dataclass
class CribbageHandState:
    """
    Complete state of one Cribbage hand.

    Attributes:
        hand_id: UUID of this hand.
        match_id: UUID of the match the hand belongs to.
        hand_number: 1-indexed hand number within the match.
        phase: Current phase.
        dealer_player_id: Seat that dealt (and owns the crib).
        crib_owner_player_id: Always the dealer.
        seating: Player IDs in seat order.
        turn_order: Seating rotated to start left of the dealer.
        crib: Cards discarded to the crib.
        cut_card: Starter card revealed after discarding.
        stock: Undealt cards, kept only until the cut.
        deck_seed: Seed used to shuffle this hand's deck.
        player_states: Map of player_id -> PlayerHandState.
        pegging: Pegging progress.
        rules: Match rules.
        payout_multiplier: 1 normal, 2 skunk, 3 double skunk.
        winner_player_id: Match winner, once someone reaches points_to_win.
        loser_score: Lowest opposing score at the moment of the win.
        last_event: Most recent scoring or Go event, for narration.
        last_hand_count: Counting breakdown (None if counting never ran).
        event_seq: Last emitted event sequence number.
        pending_events: Events emitted by the most recent command.
    """

    hand_id: str
    match_id: str
    hand_number: int = 1
    phase: CribbagePhase = CribbagePhase.CUTTING
    dealer_player_id: str = ""
    crib_owner_player_id: str = ""
    seating: list[str] = field(default_factory=list)
    turn_order: list[str] = field(default_factory=list)
    crib: list[Card] = field(default_factory=list)
    cut_card: Optional[Card] = None
    stock: list[Card] = field(default_factory=list)
    deck_seed: Optional[int] = None
    player_states: dict[str, PlayerHandState] = field(default_factory=dict)
    pegging: PeggingState = field(default_factory=PeggingState)
    rules: HandRules = field(default_factory=HandRules)
    payout_multiplier: int = 1
    winner_player_id: Optional[str] = None
    loser_score: Optional[int] = None
    last_event: Optional[HandEvent] = None
    last_hand_count: Optional[HandCount] = None
    event_seq: int = 0
    pending_events: list[HandEvent] = field(default_factory=list)

    def copy(self) -> "CribbageHandState":
        """Deep copy for all-or-nothing command application."""
        return copy.deepcopy(self)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def player_count(self) -> int:
        return len(self.turn_order)

    @property
    def discard_count(self) -> int:
        """Cards each seat sends to the crib."""
        return DISCARD_COUNT[self.player_count]

    @property
    def is_complete(self) -> bool:
        return self.phase == CribbagePhase.COMPLETE

    def get_player(self, player_id: str) -> Optional[PlayerHandState]:
        """Find a seat's state by player ID."""
        return self.player_states.get(player_id)

    def scores(self) -> dict[str, int]:
        """Current board score for each seat, in turn order."""
        return {pid: self.player_states[pid].peg_score for pid in self.turn_order}

    def can_play(self, player_id: str) -> bool:
        """Whether the seat holds a card that fits under 31."""
        ps = self.player_states[player_id]
        return has_playable_card(ps.hand, self.pegging.current_count)

    def playable_indices(self, player_id: str) -> list[int]:
        """Hand indices the seat may legally play right now."""
        ps = self.player_states[player_id]
        return [
            i for i, card in enumerate(ps.hand)
            if can_play_card(card, self.pegging.current_count)
        ]

    def acting_player_ids(self) -> list[str]:
        """Seats expected to issue the next command."""
        if self.phase == CribbagePhase.DISCARDING:
            return [
                pid for pid in self.turn_order
                if not self.player_states[pid].discarded_to_crib
            ]
        if self.phase == CribbagePhase.PEGGING and self.pegging.current_turn_player_id:
            return [self.pegging.current_turn_player_id]
        return []

    # -------------------------------------------------------------------------
    # Mutation helpers (called on a copy by the engine)
    # -------------------------------------------------------------------------

    def begin_command(self) -> None:
        """Clear events left over from the previous command."""
        self.pending_events = []

    def emit(
        self,
        event_type: EventType,
        player_id: Optional[str] = None,
        points: int = 0,
        label: str = "",
        **data,
    ) -> HandEvent:
        """
        Record an event for the current command.

        Scoring and Go events also become last_event for narration.
        """
        self.event_seq += 1
        event = HandEvent(
            event_type=event_type,
            hand_id=self.hand_id,
            sequence_num=self.event_seq,
            player_id=player_id,
            points=points,
            label=label,
            data=data,
        )
        self.pending_events.append(event)
        if event.is_narrated:
            self.last_event = event
        return event

    def award_points(self, player_id: str, points: int) -> bool:
        """
        Add points to a seat and check for a match win.

        Returns:
            True if the award won the match (phase is now COMPLETE).
        """
        if points <= 0:
            return False
        ps = self.player_states[player_id]
        ps.peg_score += points
        if ps.peg_score >= self.rules.points_to_win:
            self.declare_winner(player_id)
            return True
        return False

    def declare_winner(self, winner_player_id: str) -> None:
        """End the match: freeze scoring and compute the skunk multiplier."""
        loser_scores = [
            ps.peg_score for pid, ps in self.player_states.items()
            if pid != winner_player_id
        ]
        self.loser_score = min(loser_scores) if loser_scores else 0
        self.payout_multiplier = compute_payout_multiplier(self.loser_score, self.rules)
        self.winner_player_id = winner_player_id
        self.phase = CribbagePhase.COMPLETE
        self.pegging.current_turn_player_id = None
        self.emit(
            EventType.GAME_WON,
            player_id=winner_player_id,
            label={3: "Double Skunk!", 2: "Skunk!"}.get(self.payout_multiplier, "Wins"),
            loser_score=self.loser_score,
            payout_multiplier=self.payout_multiplier,
            scores=self.scores(),
        )

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Full snapshot (including hidden cards) for persistence."""
        return {
            "hand_id": self.hand_id,
            "match_id": self.match_id,
            "hand_number": self.hand_number,
            "phase": self.phase.value,
            "dealer_player_id": self.dealer_player_id,
            "crib_owner_player_id": self.crib_owner_player_id,
            "seating": list(self.seating),
            "turn_order": list(self.turn_order),
            "crib": cards_to_dicts(self.crib),
            "cut_card": self.cut_card.to_dict() if self.cut_card else None,
            "stock": cards_to_dicts(self.stock),
            "deck_seed": self.deck_seed,
            "player_states": {
                pid: ps.to_dict() for pid, ps in self.player_states.items()
            },
            "pegging": self.pegging.to_dict(),
            "rules": self.rules.to_dict(),
            "payout_multiplier": self.payout_multiplier,
            "winner_player_id": self.winner_player_id,
            "loser_score": self.loser_score,
            "last_event": self.last_event.to_dict() if self.last_event else None,
            "last_hand_count": self.last_hand_count.to_dict() if self.last_hand_count else None,
            "event_seq": self.event_seq,
            "pending_events": [e.to_dict() for e in self.pending_events],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CribbageHandState":
        """Rebuild a snapshot produced by to_dict()."""
        return cls(
            hand_id=d["hand_id"],
            match_id=d["match_id"],
            hand_number=d.get("hand_number", 1),
            phase=CribbagePhase(d["phase"]),
            dealer_player_id=d["dealer_player_id"],
            crib_owner_player_id=d.get("crib_owner_player_id", d["dealer_player_id"]),
            seating=list(d.get("seating", [])),
            turn_order=list(d["turn_order"]),
            crib=cards_from_dicts(d.get("crib", [])),
            cut_card=Card.from_dict(d["cut_card"]) if d.get("cut_card") else None,
            stock=cards_from_dicts(d.get("stock", [])),
            deck_seed=d.get("deck_seed"),
            player_states={
                pid: PlayerHandState.from_dict(ps)
                for pid, ps in d["player_states"].items()
            },
            pegging=PeggingState.from_dict(d.get("pegging", {})),
            rules=HandRules.from_dict(d.get("rules", {})),
            payout_multiplier=d.get("payout_multiplier", 1),
            winner_player_id=d.get("winner_player_id"),
            loser_score=d.get("loser_score"),
            last_event=HandEvent.from_dict(d["last_event"]) if d.get("last_event") else None,
            last_hand_count=(
                HandCount.from_dict(d["last_hand_count"]) if d.get("last_hand_count") else None
            ),
            event_seq=d.get("event_seq", 0),
            pending_events=[HandEvent.from_dict(e) for e in d.get("pending_events", [])],
        )

    def get_state(self, for_player_id: str) -> dict:
        """
        Get the hand state as seen from one seat.

        Hides the stock, and hides other seats' hands and discards until the
        counting phase reveals them.

        Args:
            for_player_id: The player who will receive this state.

        Returns:
            Dict suitable for JSON serialization and sending to the client.
        """
        reveal = self.phase in (CribbagePhase.COUNTING, CribbagePhase.COMPLETE)

        players_data = []
        for pid in self.turn_order:
            ps = self.player_states[pid]
            is_self = pid == for_player_id
            show = reveal or is_self
            players_data.append({
                "id": pid,
                "hand": cards_to_dicts(ps.hand) if is_self else None,
                "hand_size": len(ps.hand),
                "kept_cards": cards_to_dicts(ps.kept_cards) if show else None,
                "discarded_to_crib": cards_to_dicts(ps.discarded_to_crib) if show else None,
                "has_discarded": bool(ps.discarded_to_crib),
                "peg_score": ps.peg_score,
                "is_dealer": pid == self.dealer_player_id,
            })

        is_turn = (
            self.phase == CribbagePhase.PEGGING
            and self.pegging.current_turn_player_id == for_player_id
        )

        return {
            "hand_id": self.hand_id,
            "match_id": self.match_id,
            "hand_number": self.hand_number,
            "phase": self.phase.value,
            "phase_name": self.phase.display_name,
            "dealer_player_id": self.dealer_player_id,
            "crib_owner_player_id": self.crib_owner_player_id,
            "turn_order": list(self.turn_order),
            "players": players_data,
            "crib": cards_to_dicts(self.crib) if reveal else None,
            "crib_size": len(self.crib),
            "cut_card": self.cut_card.to_dict() if self.cut_card else None,
            "pegging": {
                **self.pegging.to_dict(),
                "active_cards": cards_to_dicts(self.pegging.active_cards()),
            },
            "is_your_turn": is_turn,
            "must_call_go": is_turn and not self.can_play(for_player_id),
            "waiting_for_discard": (
                self.phase == CribbagePhase.DISCARDING
                and for_player_id in self.acting_player_ids()
            ),
            "discard_count": self.discard_count,
            "rules": self.rules.to_dict(),
            "payout_multiplier": self.payout_multiplier,
            "winner_player_id": self.winner_player_id,
            "loser_score": self.loser_score,
            "last_event": self.last_event.to_dict() if self.last_event else None,
            "last_hand_count": self.last_hand_count.to_dict() if self.last_hand_count else None,
        }
