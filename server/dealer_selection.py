"""
Choosing the first dealer.

Every seat is dealt one card face up; the highest card (Ace high) deals.
Tied seats draw again, each new card landing on top of that seat's stack,
until one seat draws strictly highest. Seats that lost an earlier round sit
out later rounds. When the deck runs out a fresh shuffled deck is opened,
so the draw always terminates with a dealer.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from cards import Card, Deck
from constants import MIN_PLAYERS

logger = logging.getLogger(__name__)


@dataclass
class DealerDraw:
    """One card dealt to one seat during dealer selection."""

    player_id: str
    card: Card

    def to_dict(self) -> dict:
        return {"player_id": self.player_id, "card": self.card.to_dict()}


@dataclass
class DealerSelection:
    """
    Full record of a dealer draw.

    Attributes:
        dealer_player_id: The seat that won the draw.
        rounds: Draws per round, in deal order.
        stacks: Cards each seat drew, oldest first (last card is on top).
    """

    dealer_player_id: str
    rounds: list[list[DealerDraw]] = field(default_factory=list)
    stacks: dict[str, list[Card]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "dealer_player_id": self.dealer_player_id,
            "rounds": [[d.to_dict() for d in rnd] for rnd in self.rounds],
            "stacks": {
                pid: [c.to_dict() for c in cards] for pid, cards in self.stacks.items()
            },
        }


def select_dealer(players: list[str], rng: Optional[random.Random] = None) -> DealerSelection:
    """
    Run the high-card draw and return every round.

    Args:
        players: Seat IDs in table order.
        rng: Random source; seed it for a reproducible draw.

    Raises:
        ValueError: Fewer than two players, or duplicate IDs.
    """
    players = list(players)
    if len(players) < MIN_PLAYERS:
        raise ValueError(f"Dealer selection needs at least {MIN_PLAYERS} players")
    if len(set(players)) != len(players):
        raise ValueError("Player IDs must be unique")

    rng = rng or random.Random()
    deck = Deck(rng.randint(0, 2**31 - 1))
    rounds: list[list[DealerDraw]] = []
    stacks: dict[str, list[Card]] = {pid: [] for pid in players}
    contenders = players

    while True:
        draws = []
        for pid in contenders:
            if deck.cards_remaining() == 0:
                deck = Deck(rng.randint(0, 2**31 - 1))
            card = deck.draw()
            stacks[pid].append(card)
            draws.append(DealerDraw(player_id=pid, card=card))
        rounds.append(draws)

        best = max(d.card.draw_value() for d in draws)
        contenders = [d.player_id for d in draws if d.card.draw_value() == best]
        if len(contenders) == 1:
            break
        logger.debug(f"Dealer draw tied at {best} between {contenders}, redrawing")

    return DealerSelection(dealer_player_id=contenders[0], rounds=rounds, stacks=stacks)


def deal_initial_dealer(players: list[str], rng: Optional[random.Random] = None) -> str:
    """Pick the first dealer by high card. Returns the dealer's player ID."""
    return select_dealer(players, rng).dealer_player_id
