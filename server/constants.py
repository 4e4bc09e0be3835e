"""
Card distribution and rule constants for Flip 7.

This module is the single source of truth for the deck frequency table.
Rule parameters that a table may override (goal score, round limit, Flip 7
bonus) are read from config.py and copied onto each table's GameOptions.

Official distribution:
    - Number cards 0-12: value N appears N+1 times (one 0 ... thirteen 12s)
    - Action cards: Freeze, Flip Three, Second Chance (3 each)
    - Modifier cards: +4, +6, +8, +10 (2 each), x2 (3)
"""

from config import config


# =============================================================================
# Deck Composition
# =============================================================================

NUMBER_CARD_COUNTS: dict[int, int] = {value: value + 1 for value in range(13)}

ACTION_CARD_COUNTS: dict[str, int] = {
    "freeze": 3,
    "flip_three": 3,
    "second_chance": 3,
}

MODIFIER_CARD_COUNTS: dict[str, int] = {
    "plus4": 2,
    "plus6": 2,
    "plus8": 2,
    "plus10": 2,
    "x2": 3,
}

# Flat points added by each plus modifier (x2 is a multiplier, not listed)
MODIFIER_BONUS_POINTS: dict[str, int] = {
    "plus4": 4,
    "plus6": 6,
    "plus8": 8,
    "plus10": 10,
}

DECK_SIZE = (
    sum(NUMBER_CARD_COUNTS.values())
    + sum(ACTION_CARD_COUNTS.values())
    + sum(MODIFIER_CARD_COUNTS.values())
)


# =============================================================================
# Rule Constants
# =============================================================================

DEFAULT_MAX_ROUNDS = config.game_defaults.max_rounds
DEFAULT_GOAL_SCORE = config.game_defaults.goal_score
FLIP_7_BONUS = config.game_defaults.completion_bonus
FLIP_7_TARGET = config.game_defaults.completion_target
FLIP_THREE_COUNT = config.game_defaults.flip_three_count
MIN_PLAYERS = config.game_defaults.min_players
MAX_PLAYERS = config.game_defaults.max_players

ROOM_CODE_LENGTH = config.ROOM_CODE_LENGTH
ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
