"""
Hand lifecycle for Cribbage.

One hand moves strictly forward through its phases:

    deal_hand()              -> DISCARDING
    discard_to_crib() x N    -> cut, His Heels -> PEGGING
    play_card() / call_go()  -> COUNTING          (see pegging.py)
    apply_hand_count_scores()-> COMPLETE
    start_new_hand()         -> next hand, dealer rotates left

A seat reaching points_to_win at any point ends the match immediately:
the phase jumps to COMPLETE, winner and payout multiplier are fixed, and
nothing after the winning award is applied.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from cards import Deck
from constants import (
    CARDS_PER_PLAYER,
    CRIB_SIZE,
    HIS_HEELS_POINTS,
    MAX_PLAYERS,
    MIN_PLAYERS,
)
from errors import IllegalMove, InvariantViolation
from models.events import EventType
from models.hand_state import (
    CountStep,
    CribbageHandState,
    CribbagePhase,
    HandCount,
    HandRules,
    PeggingState,
    PlayerHandState,
)
from scoring import get_total_from_combos, is_his_heels, score_hand

logger = logging.getLogger(__name__)


# =============================================================================
# Dealing
# =============================================================================

def _rotate_from_left_of(player_ids: list[str], dealer_player_id: str) -> list[str]:
    """Seat order starting left of the dealer, dealer last."""
    idx = player_ids.index(dealer_player_id)
    return player_ids[idx + 1:] + player_ids[:idx + 1]


def deal_hand(
    player_ids: list[str],
    dealer_player_id: str,
    rules: Optional[HandRules] = None,
    seed: Optional[int] = None,
    match_id: Optional[str] = None,
    hand_number: int = 1,
    peg_scores: Optional[dict[str, int]] = None,
    hand_id: Optional[str] = None,
) -> CribbageHandState:
    """
    Shuffle, deal and open the discard phase.

    Cards go out one at a time starting left of the dealer: 6 each for two
    players, 5 each for three or four. The rest of the deck stays in the
    stock until the cut.

    Args:
        player_ids: Seats in table order.
        dealer_player_id: Seat dealing this hand (owns the crib).
        rules: Match rules; defaults to the standard rules.
        seed: Deck seed for a reproducible deal.
        match_id: Match this hand belongs to (new UUID if omitted).
        hand_number: 1-indexed hand number within the match.
        peg_scores: Board scores carried over from earlier hands.
        hand_id: Hand UUID (new UUID if omitted).

    Returns:
        A snapshot in the DISCARDING phase.

    Raises:
        ValueError: Bad player count, duplicate seats, or unseated dealer.
    """
    player_ids = list(player_ids)
    if not MIN_PLAYERS <= len(player_ids) <= MAX_PLAYERS:
        raise ValueError(
            f"Cribbage needs {MIN_PLAYERS}-{MAX_PLAYERS} players, got {len(player_ids)}"
        )
    if len(set(player_ids)) != len(player_ids):
        raise ValueError("Player IDs must be unique")
    if dealer_player_id not in player_ids:
        raise ValueError(f"Dealer {dealer_player_id} is not seated")

    peg_scores = peg_scores or {}
    turn_order = _rotate_from_left_of(player_ids, dealer_player_id)
    deck = Deck(seed)

    state = CribbageHandState(
        hand_id=hand_id or str(uuid.uuid4()),
        match_id=match_id or str(uuid.uuid4()),
        hand_number=hand_number,
        phase=CribbagePhase.CUTTING,
        dealer_player_id=dealer_player_id,
        crib_owner_player_id=dealer_player_id,
        seating=player_ids,
        turn_order=turn_order,
        deck_seed=deck.seed,
        player_states={
            pid: PlayerHandState(player_id=pid, peg_score=peg_scores.get(pid, 0))
            for pid in player_ids
        },
        rules=rules or HandRules(),
    )

    for _ in range(CARDS_PER_PLAYER[len(player_ids)]):
        for pid in turn_order:
            state.player_states[pid].hand.append(deck.draw())
    state.stock = deck.cards
    state.phase = CribbagePhase.DISCARDING

    state.emit(
        EventType.HAND_DEALT,
        player_id=dealer_player_id,
        hand_number=hand_number,
        deck_seed=deck.seed,
        turn_order=list(turn_order),
        scores=state.scores(),
    )
    logger.info(
        f"Hand {state.hand_id} dealt: match={state.match_id} "
        f"hand_number={hand_number} dealer={dealer_player_id} players={len(player_ids)}"
    )
    return state


# =============================================================================
# Discarding and the cut
# =============================================================================

def discard_to_crib(
    state: CribbageHandState,
    player_id: str,
    indices: list[int],
) -> CribbageHandState:
    """
    Send cards from a seat's hand to the crib.

    When the last seat discards, the cut is turned and pegging begins.

    Raises:
        IllegalMove: Wrong phase, unknown or already-discarded seat, wrong
            number of cards, or a bad or duplicate index.
        InvariantViolation: The crib is not 4 cards at the cut.
    """
    if state.phase != CribbagePhase.DISCARDING:
        raise IllegalMove(f"Cannot discard during {state.phase.value}")
    ps = state.get_player(player_id)
    if ps is None:
        raise IllegalMove(f"Unknown player {player_id}")
    if ps.discarded_to_crib:
        raise IllegalMove(f"{player_id} has already discarded")

    indices = list(indices)
    if len(indices) != state.discard_count:
        raise IllegalMove(
            f"Must discard exactly {state.discard_count} card(s), got {len(indices)}"
        )
    if len(set(indices)) != len(indices):
        raise IllegalMove("Duplicate discard index")
    for idx in indices:
        if not isinstance(idx, int) or not 0 <= idx < len(ps.hand):
            raise IllegalMove(f"Card index {idx} out of range")

    new_state = state.copy()
    new_state.begin_command()
    ps = new_state.player_states[player_id]

    discarded = [ps.hand[i] for i in indices]
    ps.hand = [card for i, card in enumerate(ps.hand) if i not in indices]
    ps.kept_cards = list(ps.hand)
    ps.discarded_to_crib = discarded
    new_state.crib.extend(discarded)

    # Card identities stay hidden until counting
    new_state.emit(
        EventType.CRIB_DISCARD,
        player_id=player_id,
        count=len(discarded),
        crib_size=len(new_state.crib),
    )

    if all(p.discarded_to_crib for p in new_state.player_states.values()):
        _cut_and_start_pegging(new_state)
    return new_state


def _cut_and_start_pegging(state: CribbageHandState) -> None:
    if state.player_count == 3:
        state.crib.append(state.stock.pop(0))
    if len(state.crib) != CRIB_SIZE:
        raise InvariantViolation(
            f"Crib has {len(state.crib)} cards at the cut, expected {CRIB_SIZE}"
        )

    cut = state.stock.pop(0)
    state.cut_card = cut
    state.stock = []
    state.emit(EventType.CUT_CARD, player_id=state.dealer_player_id, card=cut.to_dict())

    if is_his_heels(cut):
        state.emit(
            EventType.HIS_HEELS,
            player_id=state.dealer_player_id,
            points=HIS_HEELS_POINTS,
            label="His Heels",
            card=cut.to_dict(),
        )
        if state.award_points(state.dealer_player_id, HIS_HEELS_POINTS):
            return

    state.phase = CribbagePhase.PEGGING
    state.pegging = PeggingState(current_turn_player_id=state.turn_order[0])


# =============================================================================
# Counting
# =============================================================================

def apply_hand_count_scores(state: CribbageHandState) -> CribbageHandState:
    """
    Count every hand and the crib, in order, and close the hand.

    Hands are counted starting left of the dealer, then the dealer's hand,
    then the crib. The first seat to reach points_to_win wins on the spot
    and the remaining counts are not applied.

    Raises:
        IllegalMove: The hand is not in the COUNTING phase.
    """
    if state.phase != CribbagePhase.COUNTING:
        raise IllegalMove(f"Cannot count hands during {state.phase.value}")

    new_state = state.copy()
    new_state.begin_command()
    count = HandCount(baseline_scores=new_state.scores())

    to_count = [(pid, "hand") for pid in new_state.turn_order]
    to_count.append((new_state.crib_owner_player_id, "crib"))

    won = False
    for pid, kind in to_count:
        ps = new_state.player_states[pid]
        is_crib = kind == "crib"
        cards = new_state.crib if is_crib else ps.kept_cards
        combos = score_hand(cards, new_state.cut_card, is_crib=is_crib)
        points = get_total_from_combos(combos)
        score_before = ps.peg_score

        new_state.emit(
            EventType.CRIB_SCORING if is_crib else EventType.HAND_SCORING,
            player_id=pid,
            points=points,
            label=f"{'Crib' if is_crib else 'Hand'}: {points}",
            cards=[c.to_dict() for c in cards],
            combos=[c.to_dict() for c in combos],
        )
        won = new_state.award_points(pid, points)
        count.steps.append(CountStep(
            player_id=pid,
            kind=kind,
            combos=combos,
            points=points,
            score_before=score_before,
            score_after=ps.peg_score,
        ))
        if won:
            break

    count.final_scores = new_state.scores()
    new_state.last_hand_count = count

    if not won:
        new_state.emit(
            EventType.HAND_COUNTED,
            label="Hand counted",
            baseline_scores=count.baseline_scores,
            final_scores=count.final_scores,
        )
        new_state.phase = CribbagePhase.COMPLETE

    logger.info(
        f"Hand {new_state.hand_id} counted: scores={count.final_scores} "
        f"winner={new_state.winner_player_id}"
    )
    return new_state


# =============================================================================
# Next hand and settlement
# =============================================================================

def start_new_hand(
    state: CribbageHandState,
    player_ids: Optional[list[str]] = None,
    seed: Optional[int] = None,
) -> CribbageHandState:
    """
    Deal the next hand of the match; the deal passes to the left.

    Board scores, match ID and rules carry over.

    Raises:
        IllegalMove: The current hand is not complete, or the match is won.
    """
    if state.phase != CribbagePhase.COMPLETE:
        raise IllegalMove(f"Cannot start a new hand during {state.phase.value}")
    if state.winner_player_id is not None:
        raise IllegalMove("The match is over")

    player_ids = list(player_ids) if player_ids else list(state.seating)
    if state.dealer_player_id in player_ids:
        idx = player_ids.index(state.dealer_player_id)
        next_dealer = player_ids[(idx + 1) % len(player_ids)]
    else:
        next_dealer = player_ids[0]

    return deal_hand(
        player_ids,
        next_dealer,
        rules=state.rules,
        seed=seed,
        match_id=state.match_id,
        hand_number=state.hand_number + 1,
        peg_scores={pid: ps.peg_score for pid, ps in state.player_states.items()},
    )


@dataclass
class Settlement:
    """
    Payout report for a finished match.

    Attributes:
        winner_player_id: Seat that won.
        loser_ids: Every other seat.
        payout_multiplier: 1 normal, 2 skunk, 3 double skunk.
        ante_amount: Base stake.
        amount_per_loser: What each loser pays (ante * multiplier).
        chip_changes: Net change per seat.
    """

    winner_player_id: str
    loser_ids: list[str]
    payout_multiplier: int
    ante_amount: int
    amount_per_loser: int
    chip_changes: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "winner_player_id": self.winner_player_id,
            "loser_ids": list(self.loser_ids),
            "payout_multiplier": self.payout_multiplier,
            "ante_amount": self.ante_amount,
            "amount_per_loser": self.amount_per_loser,
            "chip_changes": dict(self.chip_changes),
        }


def settle_match(state: CribbageHandState) -> Settlement:
    """
    Compute what each loser owes the winner.

    Raises:
        IllegalMove: Nobody has won yet.
    """
    if state.winner_player_id is None:
        raise IllegalMove("Cannot settle a match without a winner")

    winner = state.winner_player_id
    loser_ids = [pid for pid in state.turn_order if pid != winner]
    amount = state.rules.ante_amount * state.payout_multiplier

    chip_changes = {pid: -amount for pid in loser_ids}
    chip_changes[winner] = amount * len(loser_ids)

    return Settlement(
        winner_player_id=winner,
        loser_ids=loser_ids,
        payout_multiplier=state.payout_multiplier,
        ante_amount=state.rules.ante_amount,
        amount_per_loser=amount,
        chip_changes=chip_changes,
    )
