"""
Test suite for bot decisions in ai.py.

Covers:
- crib_discard_value(): fifteens, pairs, fives and connected discards
- choose_discard(): count, range, keeping the obvious hand
- choose_pegging_card(): taking 15/31/pairs, avoiding danger counts
- should_call_go() and choose_bot_command()

Run with: pytest test_ai_decisions.py -v
"""

import pytest

from ai import CribbageAI, crib_discard_value, expected_hand_value, unseen_cards
from cards import Card, Rank, Suit
from commands import CommandType
from hand import deal_hand
from models.hand_state import CribbagePhase, PeggingState


SUITS = {"H": Suit.HEARTS, "D": Suit.DIAMONDS, "C": Suit.CLUBS, "S": Suit.SPADES}


def card(code: str) -> Card:
    return Card(SUITS[code[-1]], Rank(code[:-1]))


def cards(codes: str) -> list[Card]:
    return [card(c) for c in codes.split()]


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:
    def test_unseen_cards_excludes_hand(self):
        hand = cards("5H 5D 5S JC KH QD")
        unseen = unseen_cards(hand)
        assert len(unseen) == 46
        assert not set(hand) & set(unseen)

    def test_expected_value_of_known_hand(self):
        assert expected_hand_value(cards("5S 5H 5D JC"), [card("5C")]) == 29.0

    def test_expected_value_without_cuts(self):
        assert expected_hand_value(cards("5S 5H 5D JC"), []) == 0.0

    def test_crib_value_of_pair_of_fives(self):
        assert crib_discard_value(cards("5H 5D")) == 5.0

    def test_crib_value_of_fifteen_and_connected(self):
        assert crib_discard_value(cards("7H 8D")) == 2.5

    def test_crib_value_of_junk(self):
        assert crib_discard_value(cards("KH 2C")) == 0.0


# =============================================================================
# Discarding
# =============================================================================

class TestChooseDiscard:
    def test_two_player_discards_two(self):
        indices = CribbageAI.choose_discard(cards("AH 4D 7S 9C JH KD"), 2, is_dealer=False)
        assert len(indices) == 2
        assert all(0 <= i < 6 for i in indices)
        assert len(set(indices)) == 2

    def test_three_player_discards_one(self):
        indices = CribbageAI.choose_discard(cards("AH 4D 7S 9C JH"), 3, is_dealer=True)
        assert len(indices) == 1
        assert 0 <= indices[0] < 5

    def test_keeps_three_fives_and_jack(self):
        hand = cards("5H 5D 5S JC KH QD")
        assert sorted(CribbageAI.choose_discard(hand, 2, is_dealer=True)) == [4, 5]

    def test_wrong_hand_size_rejected(self):
        with pytest.raises(ValueError):
            CribbageAI.choose_discard(cards("AH 4D 7S 9C JH"), 2, is_dealer=True)


# =============================================================================
# Pegging
# =============================================================================

class TestChoosePeggingCard:
    def test_takes_fifteen(self):
        assert CribbageAI.choose_pegging_card(cards("2C 10H"), 5, cards("5S")) == 1

    def test_takes_thirty_one(self):
        assert CribbageAI.choose_pegging_card(cards("AS 3H"), 28, cards("KH 9D 9S")) == 1

    def test_takes_pair(self):
        assert CribbageAI.choose_pegging_card(cards("2C 7S"), 7, cards("7H")) == 1

    def test_avoids_leading_a_five(self):
        assert CribbageAI.choose_pegging_card(cards("5H 4C"), 0, []) == 1

    def test_only_playable_cards_considered(self):
        assert CribbageAI.choose_pegging_card(cards("KH 3C"), 25, cards("KS 10D 5H")) == 1

    def test_none_when_stuck(self):
        assert CribbageAI.choose_pegging_card(cards("10H KS"), 25, cards("KH 10D 5H")) is None

    def test_should_call_go(self):
        assert CribbageAI.should_call_go(cards("10H KS"), 25)
        assert not CribbageAI.should_call_go(cards("10H AS"), 25)
        assert CribbageAI.should_call_go([], 0)


# =============================================================================
# Commands
# =============================================================================

class TestChooseBotCommand:
    def test_discard_command(self):
        state = deal_hand(["p1", "p2"], "p2", seed=3)
        command = CribbageAI.choose_bot_command(state, "p1")

        assert command.type == CommandType.DISCARD
        assert command.player_id == "p1"
        assert len(command.card_indices) == 2

    def test_no_command_after_discarding(self):
        state = deal_hand(["p1", "p2"], "p2", seed=3)
        state.player_states["p1"].discarded_to_crib = cards("2C 3C")
        assert CribbageAI.choose_bot_command(state, "p1") is None

    def test_go_command_when_stuck(self):
        state = deal_hand(["p1", "p2"], "p2", seed=3)
        state.phase = CribbagePhase.PEGGING
        state.player_states["p1"].hand = cards("10H KS")
        state.pegging = PeggingState(current_count=25, current_turn_player_id="p1")

        command = CribbageAI.choose_bot_command(state, "p1")
        assert command.type == CommandType.CALL_GO

    def test_play_command(self):
        state = deal_hand(["p1", "p2"], "p2", seed=3)
        state.phase = CribbagePhase.PEGGING
        state.player_states["p1"].hand = cards("10H 6S")
        state.pegging = PeggingState(current_count=25, current_turn_player_id="p1")

        command = CribbageAI.choose_bot_command(state, "p1")
        assert command.type == CommandType.PLAY_CARD
        assert command.card_index == 1

    def test_not_your_turn(self):
        state = deal_hand(["p1", "p2"], "p2", seed=3)
        state.phase = CribbagePhase.PEGGING
        state.pegging = PeggingState(current_turn_player_id="p1")
        assert CribbageAI.choose_bot_command(state, "p2") is None

    def test_unknown_player(self):
        state = deal_hand(["p1", "p2"], "p2", seed=3)
        assert CribbageAI.choose_bot_command(state, "nobody") is None
