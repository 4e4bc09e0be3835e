"""
Flip 7 AI Simulation Runner

Runs CPU-vs-CPU games straight through the engine to compare CPU
personalities and sanity-check the rules. No server or Redis needed.

Usage:
    python simulate.py [num_games] [num_players] [seed]
    python simulate.py detail [num_players] [seed]

Examples:
    python simulate.py 10          # Run 10 games with 4 players each
    python simulate.py 50 2 7      # Run 50 two-player games from seed 7
    python simulate.py detail 3    # Play one 3-player game turn by turn
"""

import random
import sys
from typing import Optional

from ai import CPU_PROFILES, CPUProfile, take_cpu_turn
from config import config
from deck import check_deck_integrity
from game import GameOptions, Table, TablePhase
from lobby import add_player, create_table, start_game, start_next_round
from logging_config import setup_logging
from models.effects import EffectType
from models.results import ActionResult, ErrorKind
from rounds import force_end_round, rank_players

# Safety valve against a policy that never ends a round
MAX_ACTIONS_PER_ROUND = 500


class SimulationStats:
    """Track simulation statistics."""

    def __init__(self):
        self.games_played = 0
        self.total_rounds = 0
        self.total_actions = 0
        self.player_wins: dict[str, int] = {}
        self.player_scores: dict[str, list[int]] = {}
        self.effects: dict[str, int] = {}
        self.integrity_failures = 0
        self.empty_deck_rounds = 0

    def record_game(self, table: Table):
        self.games_played += 1
        self.total_rounds += table.round

        winner = table.players[table.winner]
        self.player_wins[winner.name] = self.player_wins.get(winner.name, 0) + 1

        for player in table.players.values():
            self.player_scores.setdefault(player.name, []).append(player.total_score)

    def record_result(self, result: ActionResult):
        self.total_actions += 1
        for effect in result.effects:
            self.effects[effect.type.value] = self.effects.get(effect.type.value, 0) + 1

    def report(self) -> str:
        lines = [
            "=" * 50,
            "SIMULATION RESULTS",
            "=" * 50,
            f"Games played: {self.games_played}",
            f"Total rounds: {self.total_rounds}",
            f"Total actions: {self.total_actions}",
            f"Avg rounds/game: {self.total_rounds / max(1, self.games_played):.2f}",
            "",
            "WIN RATES:",
        ]

        total_wins = sum(self.player_wins.values())
        for name, wins in sorted(self.player_wins.items(), key=lambda x: -x[1]):
            pct = wins / max(1, total_wins) * 100
            lines.append(f"  {name}: {wins} wins ({pct:.1f}%)")

        lines.append("")
        lines.append("AVERAGE FINAL SCORES (higher is better):")

        for name, scores in sorted(
            self.player_scores.items(),
            key=lambda x: -(sum(x[1]) / len(x[1])) if x[1] else 0,
        ):
            avg = sum(scores) / len(scores) if scores else 0
            lines.append(f"  {name}: {avg:.1f}")

        lines.append("")
        lines.append("EFFECTS:")
        for effect_type in EffectType:
            count = self.effects.get(effect_type.value, 0)
            lines.append(f"  {effect_type.value}: {count}")

        lines.append("")
        lines.append("  Should be 0:")
        lines.append(f"    Deck integrity failures: {self.integrity_failures}")
        lines.append(f"  Rounds ended by an empty deck: {self.empty_deck_rounds}")

        return "\n".join(lines)


def create_cpu_table(
    num_players: int,
    rng: random.Random,
    options: Optional[GameOptions] = None,
) -> tuple[Table, dict[str, CPUProfile]]:
    """Create a waiting table seated with CPU players using random profiles."""
    profiles = rng.sample(CPU_PROFILES, min(num_players, len(CPU_PROFILES)))

    table = create_table("SIMULA", "cpu_0", profiles[0].name, options)
    for i, profile in enumerate(profiles[1:], start=1):
        table = add_player(table, f"cpu_{i}", profile.name).table

    return table, {f"cpu_{i}": profile for i, profile in enumerate(profiles)}


def play_round(
    table: Table,
    profiles: dict[str, CPUProfile],
    rng: random.Random,
    stats: SimulationStats,
    verbose: bool = False,
) -> Table:
    """Play CPU turns until the round is over."""
    for _ in range(MAX_ACTIONS_PER_ROUND):
        if table.phase != TablePhase.PLAYING:
            return table

        player_id = table.current_turn
        result = take_cpu_turn(table, player_id, profiles.get(player_id), rng)
        if not result.ok and result.error_kind == ErrorKind.EMPTY_DECK:
            stats.empty_deck_rounds += 1
            result = force_end_round(table)
        if not result.ok:
            raise RuntimeError(f"CPU action rejected: {result.error_kind.value} {result.message}")

        stats.record_result(result)
        table = result.table
        if not check_deck_integrity(table):
            stats.integrity_failures += 1

        if verbose:
            name = table.players[player_id].name
            for effect in result.effects:
                cards = ", ".join(card.label for card in effect.cards)
                print(f"  {name}: {effect.type.value} {effect.target_id or ''} {cards}".rstrip())

    raise RuntimeError(f"Round {table.round} did not finish in {MAX_ACTIONS_PER_ROUND} actions")


def run_game(
    num_players: int,
    rng: random.Random,
    stats: SimulationStats,
    options: Optional[GameOptions] = None,
    verbose: bool = False,
) -> Table:
    """Play one full game and return the finished table."""
    table, profiles = create_cpu_table(num_players, rng, options)
    table = start_game(table, "cpu_0", rng).table

    while True:
        if verbose:
            print(f"\nRound {table.round}")
        table = play_round(table, profiles, rng, stats, verbose)
        if verbose:
            for player in rank_players(table.players):
                print(f"  {player.name}: {player.round_score} this round, {player.total_score} total")
        if table.phase == TablePhase.GAME_OVER:
            break
        table = start_next_round(table, "cpu_0", rng).table

    stats.record_game(table)
    return table


def run_simulation(num_games: int = 10, num_players: int = 4, seed: Optional[int] = None):
    """Run multiple games and report statistics."""
    rng = random.Random(seed)
    stats = SimulationStats()

    print(f"\nRunning {num_games} games with {num_players} players each...")
    print("=" * 50)

    for i in range(num_games):
        table = run_game(num_players, rng, stats)
        winner = table.players[table.winner]
        print(f"Game {i + 1}/{num_games}: {winner.name} wins with {winner.total_score} "
              f"after {table.round} rounds")

    print("\n")
    print(stats.report())


def run_detailed_game(num_players: int = 4, seed: Optional[int] = None):
    """Run a single game with every effect printed."""
    rng = random.Random(seed)
    stats = SimulationStats()
    table = run_game(num_players, rng, stats, verbose=True)

    print("\n" + "=" * 50)
    print("FINAL STANDINGS")
    print("=" * 50)
    for player in rank_players(table.players):
        print(f"  {player.name}: {player.total_score} points")
    print(f"\nWinner: {table.players[table.winner].name}!")


if __name__ == "__main__":
    setup_logging(config.LOG_LEVEL if config.DEBUG else "WARNING", config.ENVIRONMENT)

    if len(sys.argv) > 1 and sys.argv[1] == "detail":
        # Detailed single game
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 4
        seed = int(sys.argv[3]) if len(sys.argv) > 3 else None
        run_detailed_game(num_players, seed)
    else:
        # Batch simulation
        num_games = int(sys.argv[1]) if len(sys.argv) > 1 else 10
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 4
        seed = int(sys.argv[3]) if len(sys.argv) > 3 else None
        run_simulation(num_games, num_players, seed)
