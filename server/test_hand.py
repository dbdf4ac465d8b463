"""
Test suite for the hand lifecycle.

Covers:
- Dealing (sizes, stock, seat order, determinism, bad input)
- Discarding to the crib and the cut (including three players)
- His Heels, including a match won on the cut
- Counting order, the counting breakdown, and a win that stops counting
- Skunk multipliers, next hand, and settlement
- A complete bot-played hand, each count step matching an independent score

Run with: pytest test_hand.py -v
"""

import json

import pytest

from ai import CribbageAI
from cards import Card, Deck, Rank, Suit
from commands import apply_command
from config import config
from errors import IllegalMove
from hand import (
    apply_hand_count_scores,
    deal_hand,
    discard_to_crib,
    settle_match,
    start_new_hand,
)
from models.events import EventType
from models.hand_state import (
    CribbageHandState,
    CribbagePhase,
    HandRules,
    compute_payout_multiplier,
)
from scoring import HandScore, score_hand


SUITS = {"H": Suit.HEARTS, "D": Suit.DIAMONDS, "C": Suit.CLUBS, "S": Suit.SPADES}

RULES = HandRules(points_to_win=121, skunk_threshold=91, double_skunk_threshold=61, ante_amount=5)


def card(code: str) -> Card:
    return Card(SUITS[code[-1]], Rank(code[:-1]))


def cards(codes: str) -> list[Card]:
    return [card(c) for c in codes.split()]


def event_types(state):
    return [e.event_type for e in state.pending_events]


def discard_all(state: CribbageHandState) -> CribbageHandState:
    """Every seat discards its first card(s), in turn order."""
    for pid in state.turn_order:
        state = discard_to_crib(state, pid, list(range(state.discard_count)))
    return state


def make_counting_state(peg_scores: dict[str, int]) -> CribbageHandState:
    """
    Two-player hand ready to count, p2 dealing.

    With a 5C cut: p1 holds 29, p2 holds 4, the crib holds 4.
    """
    state = deal_hand(["p1", "p2"], "p2", rules=RULES, seed=1, peg_scores=peg_scores)
    state.player_states["p1"].hand = []
    state.player_states["p1"].kept_cards = cards("5S 5H 5D JC")
    state.player_states["p2"].hand = []
    state.player_states["p2"].kept_cards = cards("KH QD 9C 8D")
    state.crib = cards("KS QC 9H 8C")
    state.cut_card = card("5C")
    state.stock = []
    state.phase = CribbagePhase.COUNTING
    state.pending_events = []
    return state


# =============================================================================
# Dealing
# =============================================================================

class TestDeal:
    def test_default_rules_ignore_server_config(self, monkeypatch):
        monkeypatch.setattr(config.cribbage, "points_to_win", 61)
        state = deal_hand(["p1", "p2"], "p1", seed=3)

        assert state.rules == HandRules()
        assert state.rules.points_to_win == 121

    @pytest.mark.parametrize("players,hand_size,stock_size", [
        (["p1", "p2"], 6, 40),
        (["p1", "p2", "p3"], 5, 37),
        (["p1", "p2", "p3", "p4"], 5, 32),
    ])
    def test_hand_and_stock_sizes(self, players, hand_size, stock_size):
        state = deal_hand(players, players[0], seed=3)

        assert all(len(ps.hand) == hand_size for ps in state.player_states.values())
        assert len(state.stock) == stock_size
        assert state.crib == []
        assert state.cut_card is None
        assert state.phase == CribbagePhase.DISCARDING

    def test_every_card_dealt_once(self):
        state = deal_hand(["p1", "p2", "p3", "p4"], "p3", seed=11)
        dealt = [c for ps in state.player_states.values() for c in ps.hand] + state.stock
        assert len(set(dealt)) == 52

    def test_turn_order_starts_left_of_dealer(self):
        state = deal_hand(["p1", "p2", "p3"], "p2", seed=3)
        assert state.turn_order == ["p3", "p1", "p2"]
        assert state.crib_owner_player_id == "p2"

    def test_cards_dealt_one_at_a_time(self):
        state = deal_hand(["p1", "p2"], "p2", seed=42)
        deck = Deck(42).cards
        assert state.player_states["p1"].hand == deck[0:12:2]
        assert state.player_states["p2"].hand == deck[1:12:2]

    def test_same_seed_same_deal(self):
        a = deal_hand(["p1", "p2"], "p1", seed=99)
        b = deal_hand(["p1", "p2"], "p1", seed=99)
        assert a.player_states["p1"].hand == b.player_states["p1"].hand
        assert a.stock == b.stock
        assert a.deck_seed == b.deck_seed == 99

    def test_hand_dealt_event(self):
        state = deal_hand(["p1", "p2"], "p1", seed=5, peg_scores={"p1": 7})
        assert event_types(state) == [EventType.HAND_DEALT]
        event = state.pending_events[0]
        assert event.sequence_num == 1
        assert event.data["scores"] == {"p2": 0, "p1": 7}
        assert event.data["deck_seed"] == 5

    @pytest.mark.parametrize("players,dealer", [
        (["p1"], "p1"),
        (["p1", "p2", "p3", "p4", "p5"], "p1"),
        (["p1", "p1"], "p1"),
        (["p1", "p2"], "p9"),
    ])
    def test_bad_deals_rejected(self, players, dealer):
        with pytest.raises(ValueError):
            deal_hand(players, dealer)


# =============================================================================
# Discarding and the cut
# =============================================================================

class TestDiscard:
    def setup_method(self):
        self.state = deal_hand(["p1", "p2"], "p2", rules=RULES, seed=8)
        self.state.stock[0] = card("9S")

    def test_discard_moves_cards_to_crib(self):
        original_hand = list(self.state.player_states["p1"].hand)
        new_state = discard_to_crib(self.state, "p1", [0, 5])
        ps = new_state.player_states["p1"]

        assert ps.discarded_to_crib == [original_hand[0], original_hand[5]]
        assert ps.hand == original_hand[1:5]
        assert ps.kept_cards == ps.hand
        assert new_state.crib == ps.discarded_to_crib
        assert new_state.phase == CribbagePhase.DISCARDING

    def test_discard_event_hides_cards(self):
        new_state = discard_to_crib(self.state, "p1", [0, 1])
        assert event_types(new_state) == [EventType.CRIB_DISCARD]
        assert new_state.pending_events[0].data == {"count": 2, "crib_size": 2}

    def test_discard_leaves_input_untouched(self):
        before = self.state.to_dict()
        discard_to_crib(self.state, "p1", [0, 1])
        assert self.state.to_dict() == before

    @pytest.mark.parametrize("indices", [[0], [0, 1, 2], [1, 1], [0, 6], [-1, 0]])
    def test_bad_indices_rejected(self, indices):
        with pytest.raises(IllegalMove):
            discard_to_crib(self.state, "p1", indices)

    def test_second_discard_rejected(self):
        new_state = discard_to_crib(self.state, "p1", [0, 1])
        with pytest.raises(IllegalMove):
            discard_to_crib(new_state, "p1", [0, 1])

    def test_unknown_player_rejected(self):
        with pytest.raises(IllegalMove):
            discard_to_crib(self.state, "nobody", [0, 1])

    def test_last_discard_cuts_and_starts_pegging(self):
        new_state = discard_all(self.state)

        assert new_state.cut_card == card("9S")
        assert new_state.stock == []
        assert len(new_state.crib) == 4
        assert new_state.phase == CribbagePhase.PEGGING
        assert new_state.pegging.current_turn_player_id == "p1"
        assert event_types(new_state) == [EventType.CRIB_DISCARD, EventType.CUT_CARD]

    def test_discard_after_cut_rejected(self):
        new_state = discard_all(self.state)
        with pytest.raises(IllegalMove):
            discard_to_crib(new_state, "p1", [0, 1])

    def test_three_players_crib_gets_stock_card(self):
        state = deal_hand(["p1", "p2", "p3"], "p1", seed=4)
        state.stock[0] = card("9S")
        state.stock[1] = card("8S")
        new_state = discard_all(state)

        assert len(new_state.crib) == 4
        assert new_state.crib[-1] == card("9S")
        assert new_state.cut_card == card("8S")
        assert all(len(ps.hand) == 4 for ps in new_state.player_states.values())


class TestHisHeels:
    def test_jack_cut_scores_dealer_two(self):
        state = deal_hand(["p1", "p2"], "p2", rules=RULES, seed=8)
        state.stock[0] = card("JH")
        new_state = discard_all(state)

        assert new_state.player_states["p2"].peg_score == 2
        assert new_state.phase == CribbagePhase.PEGGING
        assert event_types(new_state)[-2:] == [EventType.CUT_CARD, EventType.HIS_HEELS]
        assert new_state.last_event.label == "His Heels"

    def test_his_heels_can_win_the_match(self):
        state = deal_hand(
            ["p1", "p2"], "p2", rules=RULES, seed=8, peg_scores={"p1": 95, "p2": 119}
        )
        state.stock[0] = card("JH")
        new_state = discard_all(state)

        assert new_state.winner_player_id == "p2"
        assert new_state.phase == CribbagePhase.COMPLETE
        assert new_state.payout_multiplier == 1
        assert event_types(new_state)[-1] == EventType.GAME_WON


# =============================================================================
# Counting
# =============================================================================

class TestCounting:
    def test_count_order_and_totals(self):
        state = make_counting_state({"p1": 10, "p2": 20})
        new_state = apply_hand_count_scores(state)
        count = new_state.last_hand_count

        assert [(s.player_id, s.kind, s.points) for s in count.steps] == [
            ("p1", "hand", 29),
            ("p2", "hand", 4),
            ("p2", "crib", 4),
        ]
        assert count.baseline_scores == {"p1": 10, "p2": 20}
        assert count.final_scores == {"p1": 39, "p2": 28}
        assert new_state.phase == CribbagePhase.COMPLETE
        assert new_state.winner_player_id is None

    def test_step_deltas_chain(self):
        new_state = apply_hand_count_scores(make_counting_state({"p1": 10, "p2": 20}))
        steps = new_state.last_hand_count.steps

        assert (steps[1].score_before, steps[1].score_after) == (20, 24)
        assert (steps[2].score_before, steps[2].score_after) == (24, 28)

    def test_count_events(self):
        new_state = apply_hand_count_scores(make_counting_state({"p1": 0, "p2": 0}))

        assert event_types(new_state) == [
            EventType.HAND_SCORING,
            EventType.HAND_SCORING,
            EventType.CRIB_SCORING,
            EventType.HAND_COUNTED,
        ]
        assert new_state.pending_events[0].label == "Hand: 29"
        assert new_state.pending_events[2].label == "Crib: 4"
        assert new_state.last_event.event_type == EventType.HAND_COUNTED

    def test_non_dealer_counts_first_and_can_win(self):
        state = make_counting_state({"p1": 100, "p2": 118})
        new_state = apply_hand_count_scores(state)

        assert new_state.winner_player_id == "p1"
        assert new_state.player_states["p2"].peg_score == 118
        assert len(new_state.last_hand_count.steps) == 1
        assert new_state.phase == CribbagePhase.COMPLETE
        assert event_types(new_state) == [EventType.HAND_SCORING, EventType.GAME_WON]

    def test_dealer_wins_on_crib(self):
        state = make_counting_state({"p1": 0, "p2": 115})
        new_state = apply_hand_count_scores(state)

        assert new_state.winner_player_id == "p2"
        assert new_state.player_states["p2"].peg_score == 123
        assert new_state.loser_score == 29
        assert new_state.payout_multiplier == 3

    def test_count_outside_counting_phase(self):
        state = deal_hand(["p1", "p2"], "p2", seed=1)
        with pytest.raises(IllegalMove):
            apply_hand_count_scores(state)


# =============================================================================
# Skunks, next hand, settlement
# =============================================================================

class TestPayoutMultiplier:
    @pytest.mark.parametrize("loser_score,expected", [
        (0, 3),
        (60, 3),
        (61, 2),
        (90, 2),
        (91, 1),
        (120, 1),
    ])
    def test_thresholds_are_strict(self, loser_score, expected):
        assert compute_payout_multiplier(loser_score, RULES) == expected

    def test_skunk_disabled(self):
        rules = HandRules(skunk_enabled=False, skunk_threshold=91, double_skunk_threshold=61)
        assert compute_payout_multiplier(90, rules) == 1
        assert compute_payout_multiplier(60, rules) == 3

    def test_double_skunk_disabled(self):
        rules = HandRules(double_skunk_enabled=False, skunk_threshold=91, double_skunk_threshold=61)
        assert compute_payout_multiplier(60, rules) == 2

    def test_lowest_loser_sets_multiplier(self):
        state = deal_hand(["p1", "p2", "p3"], "p1", rules=RULES, seed=2)
        state.player_states["p2"].peg_score = 100
        state.player_states["p3"].peg_score = 70
        state.declare_winner("p1")

        assert state.loser_score == 70
        assert state.payout_multiplier == 2
        assert state.last_event.label == "Skunk!"


class TestStartNewHand:
    def test_deal_passes_left_and_scores_carry(self):
        done = apply_hand_count_scores(make_counting_state({"p1": 10, "p2": 20}))
        next_hand = start_new_hand(done, seed=7)

        assert next_hand.dealer_player_id == "p1"
        assert next_hand.hand_number == 2
        assert next_hand.match_id == done.match_id
        assert next_hand.hand_id != done.hand_id
        assert next_hand.scores() == {"p2": 28, "p1": 39}
        assert next_hand.rules == done.rules
        assert next_hand.phase == CribbagePhase.DISCARDING

    def test_three_player_rotation(self):
        state = deal_hand(["p1", "p2", "p3"], "p3", seed=1)
        state.phase = CribbagePhase.COMPLETE
        assert start_new_hand(state).dealer_player_id == "p1"

    def test_rejected_before_hand_complete(self):
        with pytest.raises(IllegalMove):
            start_new_hand(make_counting_state({"p1": 0, "p2": 0}))

    def test_rejected_after_match_won(self):
        won = apply_hand_count_scores(make_counting_state({"p1": 100, "p2": 0}))
        with pytest.raises(IllegalMove):
            start_new_hand(won)


class TestSettlement:
    def test_each_loser_pays_ante_times_multiplier(self):
        state = deal_hand(["p1", "p2", "p3"], "p1", rules=RULES, seed=2)
        state.player_states["p1"].peg_score = 121
        state.player_states["p2"].peg_score = 80
        state.player_states["p3"].peg_score = 50
        state.declare_winner("p1")

        settlement = settle_match(state)

        assert settlement.payout_multiplier == 3
        assert settlement.amount_per_loser == 15
        assert sorted(settlement.loser_ids) == ["p2", "p3"]
        assert settlement.chip_changes == {"p1": 30, "p2": -15, "p3": -15}
        assert sum(settlement.chip_changes.values()) == 0

    def test_no_winner_rejected(self):
        with pytest.raises(IllegalMove):
            settle_match(deal_hand(["p1", "p2"], "p1", seed=1))


# =============================================================================
# Whole hand and serialization
# =============================================================================

def play_out_hand(state: CribbageHandState) -> tuple[CribbageHandState, list]:
    """Drive a hand to COMPLETE with bot choices, collecting every event."""
    events = list(state.pending_events)
    while state.phase != CribbagePhase.COMPLETE:
        if state.phase == CribbagePhase.COUNTING:
            state = apply_hand_count_scores(state)
        else:
            pid = state.acting_player_ids()[0]
            state = apply_command(state, CribbageAI.choose_bot_command(state, pid))
        events.extend(state.pending_events)
    return state, events


class TestFullHand:
    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_two_player_hand(self, seed):
        state, events = play_out_hand(deal_hand(["p1", "p2"], "p2", rules=RULES, seed=seed))

        assert state.winner_player_id is None
        assert len(state.pegging.played_cards) == 8
        assert sum(e.points for e in events) == sum(state.scores().values())
        assert [e.sequence_num for e in events] == list(range(1, len(events) + 1))

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_two_player_count_matches_hand_scores(self, seed):
        state, _ = play_out_hand(deal_hand(["p1", "p2"], "p2", rules=RULES, seed=seed))
        count = state.last_hand_count

        # Non-dealer hand, dealer hand, then the dealer's crib
        assert [(s.player_id, s.kind) for s in count.steps] == [
            ("p1", "hand"), ("p2", "hand"), ("p2", "crib"),
        ]
        for step in count.steps:
            is_crib = step.kind == "crib"
            counted = state.crib if is_crib else state.player_states[step.player_id].kept_cards
            expected = HandScore.from_combos(
                score_hand(counted, state.cut_card, is_crib=is_crib)
            ).total
            assert step.points == expected
            assert step.score_after - step.score_before == expected

        for pid in ("p1", "p2"):
            played = [pc.card for pc in state.pegging.played_cards if pc.player_id == pid]
            assert sorted(played, key=str) == sorted(state.player_states[pid].kept_cards, key=str)
            counted = sum(s.points for s in count.steps if s.player_id == pid)
            assert count.baseline_scores[pid] + counted == state.scores()[pid]
        assert count.final_scores == state.scores()
        assert len(set(state.crib) | {state.cut_card}) == 5

    def test_four_player_hand(self):
        state, events = play_out_hand(deal_hand(["p1", "p2", "p3", "p4"], "p1", seed=12))

        assert len(state.pegging.played_cards) == 16
        assert sum(e.points for e in events) == sum(state.scores().values())


class TestSerialization:
    def test_json_round_trip(self):
        state = apply_hand_count_scores(make_counting_state({"p1": 3, "p2": 4}))
        data = json.loads(json.dumps(state.to_dict()))
        assert CribbageHandState.from_dict(data).to_dict() == data

    def test_view_hides_other_hands_while_discarding(self):
        state = deal_hand(["p1", "p2"], "p2", seed=1)
        state = discard_to_crib(state, "p2", [0, 1])
        view = state.get_state("p1")
        players = {p["id"]: p for p in view["players"]}

        assert players["p1"]["hand"] is not None
        assert players["p2"]["hand"] is None
        assert players["p2"]["discarded_to_crib"] is None
        assert players["p2"]["has_discarded"] is True
        assert view["crib"] is None
        assert view["crib_size"] == 2
        assert view["waiting_for_discard"] is True
        assert "stock" not in view

    def test_view_reveals_after_counting(self):
        state = apply_hand_count_scores(make_counting_state({"p1": 0, "p2": 0}))
        view = state.get_state("p1")
        players = {p["id"]: p for p in view["players"]}

        assert view["crib"] is not None
        assert len(players["p2"]["kept_cards"]) == 4
        assert view["last_hand_count"]["final_scores"] == {"p1": 29, "p2": 8}
