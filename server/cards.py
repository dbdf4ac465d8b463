"""
Cards and decks for Cribbage.

A standard 52-card deck with no jokers. Cards are immutable value objects so
they can be shared freely between snapshots, hands, the crib and the pegging
pile without copying.

Each card carries three numeric views:
    - value():      pip value used for fifteens and the pegging count
    - order():      rank order used for runs (Ace low)
    - draw_value(): high-card value used only by dealer selection (Ace high)
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from constants import PIP_VALUES, RANK_ORDER, DRAW_VALUES


class Suit(Enum):
    """Card suits for a standard deck."""

    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"
    SPADES = "spades"


class Rank(Enum):
    """Card ranks with their display values."""

    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"


SUIT_SYMBOLS: dict[Suit, str] = {
    Suit.HEARTS: "♥",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
    Suit.SPADES: "♠",
}


@dataclass(frozen=True)
class Card:
    """
    A playing card.

    Attributes:
        suit: The card's suit.
        rank: The card's rank (A, 2-10, J, Q, K).
    """

    suit: Suit
    rank: Rank

    def value(self) -> int:
        """Pip value for counting (A=1, faces=10)."""
        return PIP_VALUES[self.rank.value]

    def order(self) -> int:
        """Rank order for runs (A=1 ... K=13)."""
        return RANK_ORDER[self.rank.value]

    def draw_value(self) -> int:
        """High-card value for dealer selection (A=14 ... 2=2)."""
        return DRAW_VALUES[self.rank.value]

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {
            "rank": self.rank.value,
            "suit": self.suit.value,
            "value": self.value(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        """
        Create a card from its dictionary form.

        The "value" key is derived and ignored on input.

        Raises:
            ValueError: If rank or suit is not recognized.
        """
        return cls(suit=Suit(d["suit"]), rank=Rank(d["rank"]))

    def __str__(self) -> str:
        return f"{self.rank.value}{SUIT_SYMBOLS[self.suit]}"


def create_deck() -> list[Card]:
    """
    Build the 52 standard cards in canonical order.

    Returns:
        Cards ordered suit by suit (hearts, diamonds, clubs, spades), A..K.
    """
    return [Card(suit, rank) for suit in Suit for rank in Rank]


def shuffle(deck: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Fisher-Yates shuffle over a copy of the deck.

    Walks from the last position down, swapping each position with a
    uniformly chosen position at or below it, so every permutation is
    equally likely.

    Args:
        deck: Cards to shuffle (left untouched).
        rng: Random source. Pass a seeded random.Random for replayable deals.

    Returns:
        A new shuffled list.
    """
    rng = rng or random.Random()
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class Deck:
    """
    A shuffled 52-card deck that can be drawn from.

    The deck is initialized with a seed so a hand can be dealt again
    exactly, which lets any client or a replay reproduce the deal.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        """
        Initialize a new shuffled deck.

        Args:
            seed: Optional random seed for deterministic shuffle.
                  If None, a random seed is generated and stored.
        """
        self.seed: int = seed if seed is not None else random.randint(0, 2**31 - 1)
        self.cards: list[Card] = shuffle(create_deck(), random.Random(self.seed))

    def draw(self) -> Optional[Card]:
        """
        Draw the top card from the deck.

        Returns:
            The drawn Card, or None if deck is empty.
        """
        if self.cards:
            return self.cards.pop(0)
        return None

    def cards_remaining(self) -> int:
        """Return the number of cards left in the deck."""
        return len(self.cards)


def cards_to_dicts(cards: list[Card]) -> list[dict]:
    """Serialize a list of cards."""
    return [card.to_dict() for card in cards]


def cards_from_dicts(data: list[dict]) -> list[Card]:
    """Deserialize a list of cards."""
    return [Card.from_dict(d) for d in data]
