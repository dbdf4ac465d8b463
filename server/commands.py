"""
Command records and dispatch.

Every action a seat (human or bot) takes on a hand is a Command. The host
applies commands through apply_command(), which routes each command type
to its engine operation via the COMMAND_HANDLERS table.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from errors import IllegalMove
from hand import apply_hand_count_scores, discard_to_crib, start_new_hand
from models.hand_state import CribbageHandState
from pegging import call_go, play_card


class CommandType(str, Enum):
    DISCARD = "discard"
    PLAY_CARD = "play_card"
    CALL_GO = "call_go"
    COUNT_HANDS = "count_hands"
    START_NEW_HAND = "start_new_hand"


@dataclass
class Command:
    """
    A single action against a hand.

    Attributes:
        type: What to do.
        player_id: Acting seat (None for count_hands / start_new_hand).
        card_indices: Hand indices for discard.
        card_index: Hand index for play_card.
        player_ids: Seats for the next hand (start_new_hand only).
        seed: Optional deck seed for start_new_hand.
    """

    type: CommandType
    player_id: Optional[str] = None
    card_indices: list[int] = field(default_factory=list)
    card_index: Optional[int] = None
    player_ids: Optional[list[str]] = None
    seed: Optional[int] = None

    @classmethod
    def discard(cls, player_id: str, card_indices: list[int]) -> "Command":
        return cls(CommandType.DISCARD, player_id=player_id, card_indices=list(card_indices))

    @classmethod
    def play(cls, player_id: str, card_index: int) -> "Command":
        return cls(CommandType.PLAY_CARD, player_id=player_id, card_index=card_index)

    @classmethod
    def go(cls, player_id: str) -> "Command":
        return cls(CommandType.CALL_GO, player_id=player_id)

    @classmethod
    def count_hands(cls) -> "Command":
        return cls(CommandType.COUNT_HANDS)

    @classmethod
    def new_hand(cls, player_ids: Optional[list[str]] = None, seed: Optional[int] = None) -> "Command":
        return cls(CommandType.START_NEW_HAND, player_ids=player_ids, seed=seed)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "player_id": self.player_id,
            "card_indices": list(self.card_indices),
            "card_index": self.card_index,
            "player_ids": list(self.player_ids) if self.player_ids is not None else None,
            "seed": self.seed,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Command":
        """
        Parse a command from a client payload.

        Raises:
            IllegalMove: Unknown command type.
        """
        try:
            command_type = CommandType(d.get("type"))
        except ValueError:
            raise IllegalMove(f"Unknown command type: {d.get('type')!r}")
        return cls(
            type=command_type,
            player_id=d.get("player_id"),
            card_indices=list(d.get("card_indices") or []),
            card_index=d.get("card_index"),
            player_ids=d.get("player_ids"),
            seed=d.get("seed"),
        )


def _require_player(command: Command) -> str:
    if not command.player_id:
        raise IllegalMove(f"{command.type.value} requires a player_id")
    return command.player_id


def _handle_discard(state: CribbageHandState, command: Command) -> CribbageHandState:
    return discard_to_crib(state, _require_player(command), command.card_indices)


def _handle_play_card(state: CribbageHandState, command: Command) -> CribbageHandState:
    if command.card_index is None:
        raise IllegalMove("play_card requires a card_index")
    return play_card(state, _require_player(command), command.card_index)


def _handle_call_go(state: CribbageHandState, command: Command) -> CribbageHandState:
    return call_go(state, _require_player(command))


def _handle_count_hands(state: CribbageHandState, command: Command) -> CribbageHandState:
    return apply_hand_count_scores(state)


def _handle_start_new_hand(state: CribbageHandState, command: Command) -> CribbageHandState:
    return start_new_hand(state, command.player_ids, seed=command.seed)


COMMAND_HANDLERS: dict[CommandType, Callable[[CribbageHandState, Command], CribbageHandState]] = {
    CommandType.DISCARD: _handle_discard,
    CommandType.PLAY_CARD: _handle_play_card,
    CommandType.CALL_GO: _handle_call_go,
    CommandType.COUNT_HANDS: _handle_count_hands,
    CommandType.START_NEW_HAND: _handle_start_new_hand,
}


def apply_command(state: CribbageHandState, command: Command) -> CribbageHandState:
    """
    Apply a command and return the new snapshot.

    The input snapshot is never modified; on IllegalMove it is still the
    current state.
    """
    return COMMAND_HANDLERS[command.type](state, command)
