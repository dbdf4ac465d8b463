"""
Smoke tests for the bot-vs-bot simulation runner.

Run with: pytest test_simulate.py -v
"""

import random

import pytest

from commands import CommandType
from hand import deal_hand
from models.hand_state import CribbagePhase, HandRules
from simulate import SimulationStats, create_bot_ids, next_command, run_match, run_simulation


class TestNextCommand:
    def test_discard_phase(self):
        state = deal_hand(["bot1", "bot2"], "bot2", seed=1)
        assert next_command(state).type == CommandType.DISCARD

    def test_counting_phase(self):
        state = deal_hand(["bot1", "bot2"], "bot2", seed=1)
        state.phase = CribbagePhase.COUNTING
        assert next_command(state).type == CommandType.COUNT_HANDS

    def test_complete_without_winner(self):
        state = deal_hand(["bot1", "bot2"], "bot2", seed=1)
        state.phase = CribbagePhase.COMPLETE
        assert next_command(state).type == CommandType.START_NEW_HAND

    def test_complete_with_winner(self):
        state = deal_hand(["bot1", "bot2"], "bot2", seed=1)
        state.declare_winner("bot1")
        assert next_command(state) is None


class TestRunMatch:
    @pytest.mark.parametrize("num_players", [2, 3, 4])
    def test_match_reaches_a_winner(self, num_players):
        stats = SimulationStats()
        state = run_match(create_bot_ids(num_players), stats, random.Random(num_players))

        assert state.winner_player_id is not None
        assert state.player_states[state.winner_player_id].peg_score >= state.rules.points_to_win
        assert stats.matches_played == 1
        assert stats.total_hands == state.hand_number

    def test_short_match(self):
        stats = SimulationStats()
        rules = HandRules(points_to_win=31, skunk_threshold=21, double_skunk_threshold=11)
        state = run_match(["a", "b"], stats, random.Random(0), rules=rules)

        assert state.winner_player_id in ("a", "b")
        assert sum(stats.pegging_points.values()) + sum(stats.counting_points.values()) > 0

    def test_seeded_match_is_reproducible(self):
        a = run_match(["a", "b"], SimulationStats(), random.Random(9))
        b = run_match(["a", "b"], SimulationStats(), random.Random(9))
        assert a.scores() == b.scores()
        assert a.hand_number == b.hand_number


class TestRunSimulation:
    def test_stats_and_report(self):
        stats = run_simulation(num_matches=3, num_players=2, seed=4, verbose=False)

        assert stats.matches_played == 3
        assert sum(stats.player_wins.values()) == 3
        assert stats.avg_hands_per_match >= 1
        report = stats.report()
        assert "SIMULATION RESULTS" in report
        assert "WIN RATES:" in report
