"""
Pegging state machine.

Seats take turns laying cards toward 31. Each play scores against the
active count only (cards laid since the count last reset). A seat that
cannot play calls Go; when nobody holding cards can play, the last player
to lay a card pegs 1 and the count resets.

Both commands follow the engine contract: validate against the input
snapshot, raise IllegalMove without touching it, otherwise apply to a copy
and return the copy.
"""

import logging
from typing import Callable, Optional

from constants import GO_POINTS, LAST_CARD_POINTS, PEGGING_LIMIT
from errors import IllegalMove
from models.events import EventType
from models.hand_state import CribbageHandState, CribbagePhase, PlayedCard
from scoring import can_play_card, has_playable_card, score_pegging_play

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Seat rotation helpers
# -------------------------------------------------------------------------

def _next_seat(
    state: CribbageHandState,
    after_player_id: str,
    predicate: Callable[[str], bool],
    include_self: bool = False,
) -> Optional[str]:
    """
    First seat left of after_player_id matching predicate.

    The rotation wraps around, so after_player_id itself is checked last,
    or first when include_self is set.
    """
    order = state.turn_order
    start = order.index(after_player_id)
    first = 0 if include_self else 1
    for offset in range(first, first + len(order)):
        pid = order[(start + offset) % len(order)]
        if predicate(pid):
            return pid
    return None


def _holds_cards(state: CribbageHandState, player_id: str) -> bool:
    return bool(state.player_states[player_id].hand)


def _all_hands_empty(state: CribbageHandState) -> bool:
    return not any(ps.hand for ps in state.player_states.values())


def _anyone_can_play(state: CribbageHandState) -> bool:
    count = state.pegging.current_count
    return any(
        has_playable_card(ps.hand, count) for ps in state.player_states.values()
    )


def _finish_pegging(state: CribbageHandState) -> None:
    state.pegging.current_turn_player_id = None
    state.phase = CribbagePhase.COUNTING
    logger.debug(f"Hand {state.hand_id}: pegging finished, counting")


def _reset_count(state: CribbageHandState) -> None:
    """
    Start a new count after 31 or a Go.

    The last player leads if they still hold cards; otherwise the next
    seat to their left that does.
    """
    pegging = state.pegging
    last = pegging.last_to_play
    pegging.current_count = 0
    pegging.sequence_start_index = len(pegging.played_cards)
    pegging.go_called_by = []

    if _all_hands_empty(state):
        _finish_pegging(state)
        return

    pegging.current_turn_player_id = _next_seat(
        state, last, lambda pid: _holds_cards(state, pid), include_self=True
    )


def _award_go(state: CribbageHandState, label: str, points: int) -> bool:
    """Peg a Go (or Last card) point to the last player. Returns True on a match win."""
    player_id = state.pegging.last_to_play
    state.emit(
        EventType.GO_POINT,
        player_id=player_id,
        points=points,
        label=label,
        count=state.pegging.current_count,
    )
    return state.award_points(player_id, points)


def _validate_turn(state: CribbageHandState, player_id: str) -> None:
    if state.phase != CribbagePhase.PEGGING:
        raise IllegalMove(f"Cannot peg during {state.phase.value}")
    if state.get_player(player_id) is None:
        raise IllegalMove(f"Unknown player {player_id}")
    if state.pegging.current_turn_player_id != player_id:
        raise IllegalMove(f"It is not {player_id}'s turn")


# -------------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------------

def play_card(state: CribbageHandState, player_id: str, card_index: int) -> CribbageHandState:
    """
    Lay a card from the player's hand.

    Args:
        state: Current snapshot (not modified).
        player_id: Seat laying the card; must hold the turn.
        card_index: Index into the seat's current hand.

    Returns:
        The new snapshot.

    Raises:
        IllegalMove: Wrong phase, wrong turn, bad index, or the card would
            take the count past 31.
    """
    _validate_turn(state, player_id)
    hand = state.player_states[player_id].hand
    if not isinstance(card_index, int) or not 0 <= card_index < len(hand):
        raise IllegalMove(f"Card index {card_index} out of range")
    card = hand[card_index]
    if not can_play_card(card, state.pegging.current_count):
        raise IllegalMove(
            f"{card} would take the count past {PEGGING_LIMIT} "
            f"(count is {state.pegging.current_count})"
        )

    new_state = state.copy()
    new_state.begin_command()
    pegging = new_state.pegging
    ps = new_state.player_states[player_id]

    ps.hand.pop(card_index)
    points = score_pegging_play(pegging.active_cards(), card, pegging.current_count)
    pegging.played_cards.append(PlayedCard(player_id=player_id, card=card))
    pegging.current_count += card.value()
    pegging.last_to_play = player_id

    new_state.emit(
        EventType.PEGGING_PLAY,
        player_id=player_id,
        points=points.total,
        label=" + ".join(points.labels),
        card=card.to_dict(),
        count=pegging.current_count,
    )
    if new_state.award_points(player_id, points.total):
        return new_state

    if points.thirty_one:
        _reset_count(new_state)
        return new_state

    if _all_hands_empty(new_state):
        if _award_go(new_state, "Last card", LAST_CARD_POINTS):
            return new_state
        _finish_pegging(new_state)
        return new_state

    if not _anyone_can_play(new_state):
        # Nobody holding cards fits under 31: automatic Go
        if _award_go(new_state, "Go", GO_POINTS):
            return new_state
        _reset_count(new_state)
        return new_state

    pegging.current_turn_player_id = _next_seat(
        new_state,
        player_id,
        lambda pid: _holds_cards(new_state, pid) and pid not in pegging.go_called_by,
    )
    return new_state


def call_go(state: CribbageHandState, player_id: str) -> CribbageHandState:
    """
    Declare Go: the player holds no card that fits under 31.

    Raises:
        IllegalMove: Wrong phase, wrong turn, or the player has a legal play.
    """
    _validate_turn(state, player_id)
    if state.can_play(player_id):
        raise IllegalMove(f"{player_id} has a playable card and cannot call Go")

    new_state = state.copy()
    new_state.begin_command()
    pegging = new_state.pegging
    pegging.go_called_by.append(player_id)

    new_state.emit(
        EventType.GO_CALLED,
        player_id=player_id,
        label="Go",
        count=pegging.current_count,
    )

    next_player = _next_seat(
        new_state,
        player_id,
        lambda pid: (
            pid not in pegging.go_called_by
            and has_playable_card(new_state.player_states[pid].hand, pegging.current_count)
        ),
    )
    if next_player is not None:
        pegging.current_turn_player_id = next_player
        return new_state

    if _award_go(new_state, "Go", GO_POINTS):
        return new_state
    _reset_count(new_state)
    return new_state
