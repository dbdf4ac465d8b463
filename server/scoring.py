"""
Cribbage hand and pegging scoring.

Hand scoring enumerates every scoring combination in a 4-card hand plus the
cut card, so the counting phase can show each combo with the cards that made
it. Combos are produced in a fixed order (fifteens, runs, pairs, flush, nobs);
the order only matters for presentation.

Pegging scoring looks only at the cards in the active count (since the last
reset to 0) and the card being played.
"""

from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations, product
from typing import Optional

from cards import Card, Rank, cards_from_dicts, cards_to_dicts
from constants import (
    FIFTEEN,
    FIFTEEN_POINTS,
    HAND_SIZE,
    MIN_RUN_LENGTH,
    NOBS_POINTS,
    PAIR_POINTS,
    PEGGING_LIMIT,
    THIRTY_ONE_POINTS,
)


class ComboKind(str, Enum):
    """Categories of hand scoring combinations."""

    FIFTEEN = "fifteen"
    RUN = "run"
    PAIR = "pair"
    FLUSH = "flush"
    NOBS = "nobs"


@dataclass(frozen=True)
class ScoringCombo:
    """
    One scoring combination in a counted hand.

    Attributes:
        kind: Combo category.
        label: Narration label (e.g. "Fifteen for 2", "Run of 3").
        points: Points this combo is worth.
        cards: The cards that make up the combo.
    """

    kind: ComboKind
    label: str
    points: int
    cards: tuple[Card, ...]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "label": self.label,
            "points": self.points,
            "cards": cards_to_dicts(list(self.cards)),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ScoringCombo":
        return cls(
            kind=ComboKind(d["kind"]),
            label=d["label"],
            points=d["points"],
            cards=tuple(cards_from_dicts(d["cards"])),
        )


@dataclass
class HandScore:
    """Per-category breakdown of a counted hand."""

    fifteens: int = 0
    runs: int = 0
    pairs: int = 0
    flush: int = 0
    nobs: int = 0
    total: int = 0

    @classmethod
    def from_combos(cls, combos: list[ScoringCombo]) -> "HandScore":
        score = cls()
        for combo in combos:
            attr = {
                ComboKind.FIFTEEN: "fifteens",
                ComboKind.RUN: "runs",
                ComboKind.PAIR: "pairs",
                ComboKind.FLUSH: "flush",
                ComboKind.NOBS: "nobs",
            }[combo.kind]
            setattr(score, attr, getattr(score, attr) + combo.points)
            score.total += combo.points
        return score


# =============================================================================
# Hand Scoring
# =============================================================================

def _plural_rank(rank: Rank) -> str:
    return f"{rank.value}s"


def find_fifteens(cards: list[Card]) -> list[ScoringCombo]:
    """Every distinct subset (2+ cards) whose pip values sum to 15."""
    combos = []
    for size in range(2, len(cards) + 1):
        for subset in combinations(cards, size):
            if sum(card.value() for card in subset) == FIFTEEN:
                combos.append(ScoringCombo(
                    kind=ComboKind.FIFTEEN,
                    label=f"Fifteen for {FIFTEEN_POINTS}",
                    points=FIFTEEN_POINTS,
                    cards=subset,
                ))
    return combos


def find_runs(cards: list[Card]) -> list[ScoringCombo]:
    """
    Longest run(s) of consecutive ranks, one combo per duplicate combination.

    Duplicated ranks multiply the run rather than lengthening it:
    3-4-5-5 is two runs of 3, 3-3-4-4-5 is four runs of 3.
    """
    by_order: dict[int, list[Card]] = {}
    for card in cards:
        by_order.setdefault(card.order(), []).append(card)

    ranks = sorted(by_order)
    best: list[int] = []
    current: list[int] = []
    for rank in ranks:
        if current and rank == current[-1] + 1:
            current.append(rank)
        else:
            current = [rank]
        if len(current) > len(best):
            best = list(current)

    if len(best) < MIN_RUN_LENGTH:
        return []

    return [
        ScoringCombo(
            kind=ComboKind.RUN,
            label=f"Run of {len(best)}",
            points=len(best),
            cards=run_cards,
        )
        for run_cards in product(*(by_order[rank] for rank in best))
    ]


def find_pairs(cards: list[Card]) -> list[ScoringCombo]:
    """Every unordered pair of equal rank (trips = 3 pairs, quads = 6)."""
    return [
        ScoringCombo(
            kind=ComboKind.PAIR,
            label=f"Pair of {_plural_rank(a.rank)}",
            points=PAIR_POINTS,
            cards=(a, b),
        )
        for a, b in combinations(cards, 2)
        if a.rank == b.rank
    ]


def find_flush(hand: list[Card], cut_card: Card, is_crib: bool) -> list[ScoringCombo]:
    """
    Flush: 4 hand cards of one suit (4 points, 5 with the cut).

    The crib only scores a flush when all five cards match.
    """
    suit = hand[0].suit
    if any(card.suit != suit for card in hand):
        return []

    if cut_card.suit == suit:
        return [ScoringCombo(
            kind=ComboKind.FLUSH,
            label=f"Flush ({len(hand) + 1} cards)",
            points=len(hand) + 1,
            cards=tuple(hand) + (cut_card,),
        )]

    if is_crib:
        return []

    return [ScoringCombo(
        kind=ComboKind.FLUSH,
        label=f"Flush ({len(hand)} cards)",
        points=len(hand),
        cards=tuple(hand),
    )]


def find_nobs(hand: list[Card], cut_card: Card) -> list[ScoringCombo]:
    """His Nobs: the Jack in hand matching the cut card's suit."""
    for card in hand:
        if card.rank == Rank.JACK and card.suit == cut_card.suit:
            return [ScoringCombo(
                kind=ComboKind.NOBS,
                label="His Nobs",
                points=NOBS_POINTS,
                cards=(card,),
            )]
    return []


def score_hand(cards: list[Card], cut_card: Card, is_crib: bool = False) -> list[ScoringCombo]:
    """
    Enumerate all scoring combinations for a hand plus the cut card.

    Args:
        cards: The 4 cards being counted (a hand or the crib).
        cut_card: The shared cut (starter) card.
        is_crib: Whether the cards are the crib (stricter flush rule).

    Returns:
        Combos in order: fifteens, runs, pairs, flush, nobs.

    Raises:
        ValueError: If the hand is not exactly 4 cards or the cut is missing.
    """
    if len(cards) != HAND_SIZE:
        raise ValueError(f"A counted hand must have {HAND_SIZE} cards, got {len(cards)}")
    if cut_card is None:
        raise ValueError("Cannot score a hand without a cut card")

    all_cards = list(cards) + [cut_card]
    return [
        *find_fifteens(all_cards),
        *find_runs(all_cards),
        *find_pairs(all_cards),
        *find_flush(list(cards), cut_card, is_crib),
        *find_nobs(list(cards), cut_card),
    ]


def get_total_from_combos(combos: list[ScoringCombo]) -> int:
    """Sum the points of a list of combos."""
    return sum(combo.points for combo in combos)


def is_his_heels(cut_card: Optional[Card]) -> bool:
    """Check for "His Heels" - the cut card is a Jack (2 points to dealer)."""
    return cut_card is not None and cut_card.rank == Rank.JACK


# =============================================================================
# Pegging Scoring
# =============================================================================

@dataclass
class PeggingPoints:
    """
    Points earned by a single pegging play.

    Attributes:
        fifteen: Count reached exactly 15.
        thirty_one: Count reached exactly 31.
        pair: Points for same-rank cards at the end of the count (2/6/12).
        run: Length of the run completed by this card (0 if none).
        labels: Narration parts, e.g. ["15", "Pair"].
    """

    fifteen: bool = False
    thirty_one: bool = False
    pair: int = 0
    run: int = 0
    labels: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            (FIFTEEN_POINTS if self.fifteen else 0)
            + (THIRTY_ONE_POINTS if self.thirty_one else 0)
            + self.pair
            + self.run
        )


def _pegging_pair_points(active: list[Card], new_card: Card) -> int:
    matching = 1
    for card in reversed(active):
        if card.rank != new_card.rank:
            break
        matching += 1
    if matching < 2:
        return 0
    # n of a kind = n*(n-1)/2 pairs
    return matching * (matching - 1) // 2 * PAIR_POINTS


def _pegging_run_length(active: list[Card], new_card: Card) -> int:
    sequence = active + [new_card]
    for length in range(len(sequence), MIN_RUN_LENGTH - 1, -1):
        orders = sorted(card.order() for card in sequence[-length:])
        if all(b == a + 1 for a, b in zip(orders, orders[1:])):
            return length
    return 0


def score_pegging_play(active: list[Card], new_card: Card, current_count: int) -> PeggingPoints:
    """
    Score a card laid during pegging.

    Args:
        active: Cards played since the count last reset to 0, oldest first.
        new_card: The card being played.
        current_count: The count before this card.

    Returns:
        PeggingPoints for the play ("Go" and "Last card" are awarded by the
        pegging state machine, not here).
    """
    new_count = current_count + new_card.value()
    points = PeggingPoints(
        fifteen=new_count == FIFTEEN,
        thirty_one=new_count == PEGGING_LIMIT,
        pair=_pegging_pair_points(active, new_card),
        run=_pegging_run_length(active, new_card),
    )

    if points.thirty_one:
        points.labels.append("31")
    if points.fifteen:
        points.labels.append("15")
    if points.pair == PAIR_POINTS:
        points.labels.append("Pair")
    elif points.pair == 3 * PAIR_POINTS:
        points.labels.append("Pair Royal")
    elif points.pair:
        points.labels.append("Double Pair Royal")
    if points.run:
        points.labels.append(f"Run of {points.run}")
    return points


def can_play_card(card: Card, current_count: int) -> bool:
    """Check if a card can be played without passing 31."""
    return current_count + card.value() <= PEGGING_LIMIT


def has_playable_card(hand: list[Card], current_count: int) -> bool:
    """Check if any card in the hand can be played."""
    return any(can_play_card(card, current_count) for card in hand)
