"""Bot decision policy for CPU seats in Cribbage."""

import logging
import os
from itertools import combinations
from typing import Optional

from cards import Card, Rank, create_deck
from commands import Command
from models.hand_state import CribbageHandState, CribbagePhase
from scoring import (
    can_play_card,
    find_fifteens,
    find_pairs,
    get_total_from_combos,
    has_playable_card,
    score_hand,
    score_pegging_play,
)


# Debug logging configuration
# Set AI_DEBUG=1 environment variable to enable detailed AI decision logging
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

# Create a dedicated logger for AI decisions
ai_logger = logging.getLogger("cribbage.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)
    # Add console handler if not already present
    if not ai_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [AI] %(message)s", datefmt="%H:%M:%S"
        ))
        ai_logger.addHandler(handler)


def ai_log(message: str):
    """Log AI decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# =============================================================================
# AI Decision Constants
# =============================================================================

# Counts that hand the next player an easy 15 or 31 with a ten-card
DANGER_COUNTS = {5, 21}

# Penalty (in points) for leaving the count on a danger count
DANGER_COUNT_PENALTY = 1.5

# Small tie-breaker favoring low cards, which keep options open later
LOW_CARD_WEIGHT = 0.05

# Rough worth of a 5 in any crib (fifteens with the many ten-cards)
FIVE_CRIB_VALUE = 1.5

# Rough worth of two near-consecutive discards (run potential in the crib)
CONNECTED_CRIB_VALUE = 0.5


# =============================================================================
# Helpers
# =============================================================================

def unseen_cards(hand: list[Card]) -> list[Card]:
    """Every card not in the given hand: the possible cut cards."""
    held = set(hand)
    return [card for card in create_deck() if card not in held]


def expected_hand_value(kept: list[Card], possible_cuts: list[Card]) -> float:
    """Average score of a 4-card hand over every possible cut."""
    if not possible_cuts:
        return 0.0
    total = sum(get_total_from_combos(score_hand(kept, cut)) for cut in possible_cuts)
    return total / len(possible_cuts)


def crib_discard_value(discards: list[Card]) -> float:
    """
    Estimate what the discards are worth to whoever owns the crib.

    Counts points already made between the discards (fifteens and pairs),
    then adds rough credit for 5s and for cards close enough to build runs.
    """
    value = float(get_total_from_combos(find_fifteens(discards) + find_pairs(discards)))
    value += FIVE_CRIB_VALUE * sum(1 for card in discards if card.rank == Rank.FIVE)
    for a, b in combinations(discards, 2):
        if 0 < abs(a.order() - b.order()) <= 2:
            value += CONNECTED_CRIB_VALUE
    return value


# =============================================================================
# Decisions
# =============================================================================

class CribbageAI:
    """Pure decision functions for a bot seat. Any legal choice conforms."""

    @staticmethod
    def choose_discard(hand: list[Card], player_count: int, is_dealer: bool) -> list[int]:
        """
        Pick which cards to send to the crib.

        Every way to keep 4 cards is scored by its expected value over all
        possible cuts. The discards' crib value is added when the crib is
        ours and subtracted when it belongs to an opponent.

        Returns:
            Hand indices to discard (2 for two players, 1 otherwise).

        Raises:
            ValueError: Hand is not the dealt size.
        """
        discard_count = 2 if player_count == 2 else 1
        if len(hand) - discard_count != 4:
            raise ValueError(
                f"Expected {4 + discard_count} cards for {player_count} players, got {len(hand)}"
            )

        possible_cuts = unseen_cards(hand)
        best_indices: list[int] = []
        best_score = float("-inf")

        for indices in combinations(range(len(hand)), discard_count):
            kept = [card for i, card in enumerate(hand) if i not in indices]
            discards = [hand[i] for i in indices]
            crib_value = crib_discard_value(discards)
            score = expected_hand_value(kept, possible_cuts)
            score += crib_value if is_dealer else -crib_value
            if score > best_score:
                best_score = score
                best_indices = list(indices)

        ai_log(
            f"Discard: hand={[str(c) for c in hand]} dealer={is_dealer} "
            f"-> {[str(hand[i]) for i in best_indices]} (ev={best_score:.2f})"
        )
        return best_indices

    @staticmethod
    def choose_pegging_card(
        hand: list[Card],
        current_count: int,
        played_cards: list[Card],
    ) -> Optional[int]:
        """
        Pick a card to lay during pegging.

        Args:
            hand: Cards still held.
            current_count: The running count.
            played_cards: Cards in the active count, oldest first.

        Returns:
            Index of the card to play, or None when nothing fits under 31.
        """
        best_index: Optional[int] = None
        best_score = float("-inf")

        for i, card in enumerate(hand):
            if not can_play_card(card, current_count):
                continue
            points = score_pegging_play(played_cards, card, current_count).total
            new_count = current_count + card.value()
            score = points - LOW_CARD_WEIGHT * card.value()
            if new_count in DANGER_COUNTS:
                score -= DANGER_COUNT_PENALTY
            if score > best_score:
                best_score = score
                best_index = i

        if best_index is not None:
            ai_log(
                f"Peg: count={current_count} hand={[str(c) for c in hand]} "
                f"-> {hand[best_index]} (score={best_score:.2f})"
            )
        return best_index

    @staticmethod
    def should_call_go(hand: list[Card], current_count: int) -> bool:
        """Go is called exactly when no held card fits under 31."""
        return not has_playable_card(hand, current_count)

    @staticmethod
    def choose_bot_command(state: CribbageHandState, player_id: str) -> Optional[Command]:
        """
        The command this seat would issue right now, if it has one.

        Returns None when the seat is not expected to act.
        """
        ps = state.get_player(player_id)
        if ps is None or player_id not in state.acting_player_ids():
            return None

        if state.phase == CribbagePhase.DISCARDING:
            indices = CribbageAI.choose_discard(
                ps.hand, state.player_count, player_id == state.dealer_player_id
            )
            return Command.discard(player_id, indices)

        if state.phase == CribbagePhase.PEGGING:
            count = state.pegging.current_count
            if CribbageAI.should_call_go(ps.hand, count):
                return Command.go(player_id)
            index = CribbageAI.choose_pegging_card(
                ps.hand, count, state.pegging.active_cards()
            )
            return Command.play(player_id, index)

        return None
