"""
Cribbage AI Simulation Runner

Runs bot-vs-bot matches directly against the engine to sanity-check the
bot policy and the rules. No server, database or Redis needed.

Usage:
    python simulate.py [num_matches] [num_players] [seed]
    python simulate.py detail [num_players] [seed]

Examples:
    python simulate.py 10        # Run 10 two-player matches
    python simulate.py 50 3      # Run 50 three-player matches
    python simulate.py detail 2  # Narrate a single match
"""

import random
import sys
from typing import Optional

from ai import CribbageAI
from commands import Command, CommandType, apply_command
from dealer_selection import deal_initial_dealer
from hand import deal_hand, settle_match
from models.events import EventType
from models.hand_state import CribbageHandState, CribbagePhase, HandRules

# Safety limit on hands in one match
MAX_HANDS_PER_MATCH = 100


class SimulationStats:
    """Track simulation statistics."""

    def __init__(self):
        self.matches_played = 0
        self.total_hands = 0
        self.player_wins: dict[str, int] = {}
        self.skunks = 0
        self.double_skunks = 0
        self.pegging_points: dict[str, int] = {}
        self.counting_points: dict[str, int] = {}
        self.best_hand_points = 0
        self.best_hand: list[str] = []
        self.go_calls = 0

    def record_match(self, state: CribbageHandState):
        self.matches_played += 1
        self.total_hands += state.hand_number
        winner = state.winner_player_id
        self.player_wins[winner] = self.player_wins.get(winner, 0) + 1
        if state.payout_multiplier == 3:
            self.double_skunks += 1
        elif state.payout_multiplier == 2:
            self.skunks += 1

    def record_events(self, state: CribbageHandState):
        """Tally the events emitted by the most recent command."""
        for event in state.pending_events:
            pid = event.player_id
            if event.event_type in (EventType.PEGGING_PLAY, EventType.GO_POINT):
                self.pegging_points[pid] = self.pegging_points.get(pid, 0) + event.points
            elif event.event_type in (EventType.HAND_SCORING, EventType.CRIB_SCORING):
                self.counting_points[pid] = self.counting_points.get(pid, 0) + event.points
                if event.points > self.best_hand_points:
                    self.best_hand_points = event.points
                    self.best_hand = [
                        f"{c['rank']}{c['suit'][0].upper()}" for c in event.data.get("cards", [])
                    ]
            elif event.event_type == EventType.GO_CALLED:
                self.go_calls += 1

    @property
    def avg_hands_per_match(self) -> float:
        return self.total_hands / max(1, self.matches_played)

    def report(self) -> str:
        lines = [
            "=" * 50,
            "SIMULATION RESULTS",
            "=" * 50,
            f"Matches played: {self.matches_played}",
            f"Total hands: {self.total_hands}",
            f"Avg hands/match: {self.avg_hands_per_match:.1f}",
            f"Skunks: {self.skunks}",
            f"Double skunks: {self.double_skunks}",
            f"Go calls: {self.go_calls}",
            f"Best counted hand: {self.best_hand_points} {' '.join(self.best_hand)}",
            "",
            "WIN RATES:",
        ]

        total_wins = sum(self.player_wins.values())
        for name, wins in sorted(self.player_wins.items(), key=lambda x: -x[1]):
            pct = wins / max(1, total_wins) * 100
            lines.append(f"  {name}: {wins} wins ({pct:.1f}%)")

        lines.append("")
        lines.append("POINTS BY SOURCE (pegging / counting):")
        for name in sorted(set(self.pegging_points) | set(self.counting_points)):
            lines.append(
                f"  {name}: {self.pegging_points.get(name, 0)} / "
                f"{self.counting_points.get(name, 0)}"
            )

        return "\n".join(lines)


def create_bot_ids(num_players: int) -> list[str]:
    return [f"bot{i + 1}" for i in range(num_players)]


def next_command(state: CribbageHandState) -> Optional[Command]:
    """The next command any seat (or the host) would issue."""
    if state.phase == CribbagePhase.COUNTING:
        return Command.count_hands()
    if state.phase == CribbagePhase.COMPLETE:
        if state.winner_player_id is None:
            return Command.new_hand()
        return None
    for player_id in state.acting_player_ids():
        command = CribbageAI.choose_bot_command(state, player_id)
        if command is not None:
            return command
    return None


def run_match(
    player_ids: list[str],
    stats: SimulationStats,
    rng: Optional[random.Random] = None,
    rules: Optional[HandRules] = None,
    verbose: bool = False,
) -> CribbageHandState:
    """Play one match to a winner. Returns the final snapshot."""
    rng = rng or random.Random()
    dealer = deal_initial_dealer(player_ids, rng)
    state = deal_hand(player_ids, dealer, rules=rules, seed=rng.randint(0, 2**31 - 1))
    stats.record_events(state)

    while state.winner_player_id is None:
        if state.hand_number > MAX_HANDS_PER_MATCH:
            raise RuntimeError(f"Match {state.match_id} exceeded {MAX_HANDS_PER_MATCH} hands")
        command = next_command(state)
        if command is None:
            raise RuntimeError(f"No seat can act in phase {state.phase.value}")
        if command.type == CommandType.START_NEW_HAND:
            command.seed = rng.randint(0, 2**31 - 1)
        state = apply_command(state, command)
        stats.record_events(state)

        if verbose:
            for event in state.pending_events:
                if event.is_narrated:
                    print(f"  [{event.sequence_num:3}] {event.player_id or '-'}: "
                          f"{event.label} ({event.points})")

    stats.record_match(state)
    return state


def run_simulation(
    num_matches: int = 10,
    num_players: int = 2,
    seed: Optional[int] = None,
    verbose: bool = True,
) -> SimulationStats:
    """Run multiple matches and report statistics."""
    if verbose:
        print(f"\nRunning {num_matches} matches with {num_players} players each...")
        print("=" * 50)

    rng = random.Random(seed)
    stats = SimulationStats()
    player_ids = create_bot_ids(num_players)

    for i in range(num_matches):
        state = run_match(player_ids, stats, rng)
        if verbose:
            settlement = settle_match(state)
            print(
                f"Match {i + 1}/{num_matches}: {state.winner_player_id} wins "
                f"in {state.hand_number} hands (x{settlement.payout_multiplier})"
            )

    if verbose:
        print("\n")
        print(stats.report())
    return stats


def run_detailed_match(num_players: int = 2, seed: Optional[int] = None):
    """Narrate a single match event by event."""
    stats = SimulationStats()
    state = run_match(create_bot_ids(num_players), stats, random.Random(seed), verbose=True)

    print("\n" + "=" * 50)
    print("FINAL SCORES")
    print("=" * 50)
    for pid, score in sorted(state.scores().items(), key=lambda x: -x[1]):
        print(f"  {pid}: {score}")

    settlement = settle_match(state)
    print(f"\nWinner: {settlement.winner_player_id} "
          f"({settlement.amount_per_loser} from each loser)")


def main():
    if len(sys.argv) > 1 and sys.argv[1] == "detail":
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 2
        seed = int(sys.argv[3]) if len(sys.argv) > 3 else None
        run_detailed_match(num_players, seed)
    else:
        num_matches = int(sys.argv[1]) if len(sys.argv) > 1 else 10
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 2
        seed = int(sys.argv[3]) if len(sys.argv) > 3 else None
        run_simulation(num_matches, num_players, seed)


if __name__ == "__main__":
    main()
