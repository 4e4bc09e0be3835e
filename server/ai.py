"""AI personalities for CPU players in Flip 7."""

import logging
import os
import random
from dataclasses import dataclass
from typing import Optional

from deck import build_deck
from game import ActionType, Card, Player, Table
from hand import can_use_second_chance, score_hand, unique_number_values
from models.results import ActionResult, ErrorKind
from turns import eligible_targets, hit, select_target, stay


# Debug logging configuration
# Set AI_DEBUG=1 environment variable to enable detailed AI decision logging
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

ai_logger = logging.getLogger("flip7.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)


def ai_log(message: str):
    """Log AI decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# =============================================================================
# Probability helpers
# =============================================================================


def unseen_cards(table: Table) -> list[Card]:
    """
    Cards nobody has seen this round.

    Computed as the full deck minus every card in a hand or the discard
    pile, so the CPU never reads the order of the draw pile.
    """
    seen = {card.id for card in table.discard_pile}
    for player in table.players.values():
        seen.update(card.id for card in player.hand)
    return [card for card in build_deck() if card.id not in seen]


def bust_probability(hand: list[Card], unseen: list[Card]) -> float:
    """
    Chance the next card duplicates a number already in hand.

    Holding a Second Chance makes the next draw safe.
    """
    if not unseen or can_use_second_chance(hand):
        return 0.0
    held = unique_number_values(hand)
    duplicates = sum(1 for card in unseen if card.is_number and card.value in held)
    return duplicates / len(unseen)


def completion_probability(hand: list[Card], unseen: list[Card], target: int) -> float:
    """Chance the next card completes Flip 7 (0 unless one value short)."""
    held = unique_number_values(hand)
    if not unseen or len(held) != target - 1:
        return 0.0
    fresh = sum(1 for card in unseen if card.is_number and card.value not in held)
    return fresh / len(unseen)


# =============================================================================
# CPU Profiles
# =============================================================================


@dataclass
class CPUProfile:
    """Pre-defined CPU player profile with personality traits."""
    name: str
    style: str  # Brief description shown to players
    # Highest bust probability the CPU will draw into (0.0-1.0)
    risk_tolerance: float
    # Bank at or above this hand score no matter the odds
    stay_score: int
    # Wildcard factor: chance of unexpected plays (0.0-0.3)
    unpredictability: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "style": self.style,
        }


CPU_PROFILES = [
    CPUProfile(
        name="Sofia",
        style="Calculated & Patient",
        risk_tolerance=0.20,
        stay_score=25,
        unpredictability=0.02,
    ),
    CPUProfile(
        name="Maya",
        style="Push Your Luck",
        risk_tolerance=0.40,
        stay_score=45,
        unpredictability=0.10,
    ),
    CPUProfile(
        name="Marcus",
        style="Steady Eddie",
        risk_tolerance=0.28,
        stay_score=30,
        unpredictability=0.03,
    ),
    CPUProfile(
        name="Kenji",
        style="Flip 7 Chaser",
        risk_tolerance=0.45,
        stay_score=60,
        unpredictability=0.12,
    ),
    CPUProfile(
        name="Diego",
        style="Chaotic Gambler",
        risk_tolerance=0.35,
        stay_score=40,
        unpredictability=0.28,
    ),
    CPUProfile(
        name="River",
        style="Adaptive Strategist",
        risk_tolerance=0.30,
        stay_score=35,
        unpredictability=0.08,
    ),
]

DEFAULT_PROFILE = CPUProfile("CPU", "Balanced", 0.30, 35, 0.05)

# Track profiles per room (room_code -> set of used profile names)
_room_used_profiles: dict[str, set[str]] = {}
# Track cpu_id -> (room_code, profile) mapping
_cpu_profiles: dict[str, tuple[str, CPUProfile]] = {}


def assign_profile(cpu_id: str, room_code: str) -> Optional[CPUProfile]:
    """Assign a random unused profile to a CPU player in a specific room."""
    used_in_room = _room_used_profiles.setdefault(room_code, set())
    available = [p for p in CPU_PROFILES if p.name not in used_in_room]
    if not available:
        return None
    profile = random.choice(available)
    used_in_room.add(profile.name)
    _cpu_profiles[cpu_id] = (room_code, profile)
    return profile


def get_profile(cpu_id: str) -> Optional[CPUProfile]:
    """Get the profile for a CPU player."""
    entry = _cpu_profiles.get(cpu_id)
    return entry[1] if entry else None


def release_profile(cpu_id: str):
    """Release a CPU player's profile back to its room's pool."""
    entry = _cpu_profiles.pop(cpu_id, None)
    if entry is None:
        return
    room_code, profile = entry
    used = _room_used_profiles.get(room_code)
    if used is not None:
        used.discard(profile.name)
        if not used:
            del _room_used_profiles[room_code]


def cleanup_room_profiles(room_code: str):
    """Clean up all profile tracking for a room when it's deleted."""
    _room_used_profiles.pop(room_code, None)
    to_remove = [cpu_id for cpu_id, (rc, _) in _cpu_profiles.items() if rc == room_code]
    for cpu_id in to_remove:
        del _cpu_profiles[cpu_id]


def reset_all_profiles():
    """Reset all profile tracking (for tests)."""
    _room_used_profiles.clear()
    _cpu_profiles.clear()


def get_all_profiles() -> list[dict]:
    """Get all CPU profiles for display."""
    return [p.to_dict() for p in CPU_PROFILES]


# =============================================================================
# Decisions
# =============================================================================


class Flip7AI:
    """AI decision-making for Flip 7."""

    @staticmethod
    def should_hit(
        table: Table,
        player: Player,
        profile: CPUProfile,
        rng: Optional[random.Random] = None,
    ) -> bool:
        """
        Decide between hit and stay.

        Draws while the bust chance is within the profile's tolerance and
        the hand is below its stay score. A near-certain Flip 7 is always
        drawn for, and a safe draw is always taken.
        """
        rng = rng or random
        unseen = unseen_cards(table)
        if not unseen:
            return False

        opts = table.options
        hand_score = score_hand(player.hand, opts).total
        p_bust = bust_probability(player.hand, unseen)
        p_complete = completion_probability(player.hand, unseen, opts.completion_target)

        if p_bust == 0.0:
            ai_log(f"{player.name}: safe draw at {hand_score}")
            return True

        if p_complete > p_bust:
            ai_log(f"{player.name}: chasing Flip 7 ({p_complete:.2f} vs bust {p_bust:.2f})")
            return True

        if rng.random() < profile.unpredictability:
            choice = rng.random() < 0.5
            ai_log(f"{player.name}: unpredictable {'hit' if choice else 'stay'}")
            return choice

        if hand_score >= profile.stay_score:
            ai_log(f"{player.name}: banking {hand_score} (>= {profile.stay_score})")
            return False

        decision = p_bust <= profile.risk_tolerance
        ai_log(
            f"{player.name}: bust {p_bust:.2f} vs tolerance {profile.risk_tolerance:.2f} "
            f"-> {'hit' if decision else 'stay'}"
        )
        return decision

    @staticmethod
    def choose_target(table: Table, player_id: str, action: ActionType) -> Optional[str]:
        """
        Pick a target for a Freeze or Flip Three.

        Freeze goes to the opponent leading on total plus current hand,
        ending their round. Flip Three goes to the opponent most likely to
        bust: the one holding the most distinct numbers, leader first on
        ties.
        """
        targets = eligible_targets(table, player_id)
        if not targets:
            return None

        opts = table.options
        players = [table.players[pid] for pid in targets]

        def projected_total(p: Player) -> int:
            return p.total_score + score_hand(p.hand, opts).total

        if action == ActionType.FREEZE:
            choice = max(players, key=projected_total)
        else:
            choice = max(
                players,
                key=lambda p: (len(unique_number_values(p.hand)), projected_total(p)),
            )
        ai_log(f"{player_id} targets {choice.name} with {action.value}")
        return choice.id


def take_cpu_turn(
    table: Table,
    player_id: str,
    profile: Optional[CPUProfile] = None,
    rng: Optional[random.Random] = None,
) -> ActionResult:
    """
    Make one engine call on behalf of a CPU player.

    Picks a target if one is pending, otherwise hits or stays.
    """
    player = table.get_player(player_id)
    if player is None:
        return ActionResult.failure(ErrorKind.PLAYER_NOT_FOUND, f"Unknown player {player_id}")
    profile = profile or get_profile(player_id) or DEFAULT_PROFILE

    pending = table.pending_action
    if pending is not None and pending.player_id == player_id:
        target_id = Flip7AI.choose_target(table, player_id, pending.action)
        return select_target(table, player_id, target_id or "")

    if Flip7AI.should_hit(table, player, profile, rng):
        return hit(table, player_id)
    return stay(table, player_id)

