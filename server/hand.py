"""
Hand evaluation for Flip 7.

Pure functions over a hand (a list of Card in draw order). Nothing here
touches a table; the turn resolver calls these to decide what a draw did.

Scoring:
    - Each distinct number value counts once
    - Plus modifiers add their face value to that sum
    - Each x2 modifier doubles the sum
    - A Flip 7 hand adds the completion bonus after doubling
    - A busted hand scores 0
"""

from dataclasses import dataclass
from typing import Optional

from constants import MODIFIER_BONUS_POINTS
from game import ActionType, Card, GameOptions, ModifierType
from models.results import EngineError, ErrorKind, NoDuplicateFoundError


@dataclass(frozen=True)
class ScoreBreakdown:
    """
    Score of a hand and how it was reached.

    Attributes:
        total: Points banked for the round.
        unique_sum: Distinct number values plus flat modifier points.
        multiplier: 2 per x2 modifier, multiplied together.
        completion_bonus: Bonus for Flip 7, 0 otherwise.
    """

    total: int
    unique_sum: int
    multiplier: int
    completion_bonus: int

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "unique_sum": self.unique_sum,
            "multiplier": self.multiplier,
            "completion_bonus": self.completion_bonus,
        }


def _options(options: Optional[GameOptions]) -> GameOptions:
    return options if options is not None else GameOptions()


def number_cards(hand: list[Card]) -> list[Card]:
    return [card for card in hand if card.is_number]


def unique_number_values(hand: list[Card]) -> set[int]:
    """Distinct values among the number cards in the hand."""
    return {card.value for card in hand if card.is_number}


def has_flip7(hand: list[Card], options: Optional[GameOptions] = None) -> bool:
    """True if the hand holds exactly the completion target of distinct values."""
    return len(unique_number_values(hand)) == _options(options).completion_target


def has_duplicate(hand: list[Card]) -> bool:
    return len(number_cards(hand)) > len(unique_number_values(hand))


def is_busted(hand: list[Card], options: Optional[GameOptions] = None) -> bool:
    """
    True if two number cards share a value.

    A Flip 7 hand is never busted, even when the card that completed it
    also duplicated a value.
    """
    return has_duplicate(hand) and not has_flip7(hand, options)


def can_use_second_chance(hand: list[Card]) -> bool:
    return any(
        card.is_action and card.action == ActionType.SECOND_CHANCE
        for card in hand
    )


def first_duplicate_value(hand: list[Card]) -> Optional[int]:
    """First value seen twice, scanning the hand in order."""
    seen: set[int] = set()
    for card in number_cards(hand):
        if card.value in seen:
            return card.value
        seen.add(card.value)
    return None


def apply_second_chance(
    hand: list[Card],
    options: Optional[GameOptions] = None,
) -> tuple[list[Card], list[Card], int]:
    """
    Spend a Second Chance to cancel a duplicate.

    Removes exactly one Second Chance card and exactly one card of the first
    duplicated value (its earliest copy in hand order). Every other card,
    including remaining copies of that value, is kept.

    Args:
        hand: A busted hand holding a Second Chance card.
        options: Table options (completion target).

    Returns:
        (new hand, removed cards, duplicated value)

    Raises:
        NoDuplicateFoundError: If the hand is not busted.
        EngineError: If the hand holds no Second Chance card.
    """
    if not is_busted(hand, options):
        raise NoDuplicateFoundError("Second Chance needs a duplicated number")
    if not can_use_second_chance(hand):
        raise EngineError("No Second Chance card in hand", ErrorKind.ACTION_NOT_ALLOWED)

    duplicate_value = first_duplicate_value(hand)
    new_hand: list[Card] = []
    removed: list[Card] = []
    second_chance_removed = False
    duplicate_removed = False

    for card in hand:
        if (
            not second_chance_removed
            and card.is_action
            and card.action == ActionType.SECOND_CHANCE
        ):
            removed.append(card)
            second_chance_removed = True
        elif not duplicate_removed and card.is_number and card.value == duplicate_value:
            removed.append(card)
            duplicate_removed = True
        else:
            new_hand.append(card)

    return new_hand, removed, duplicate_value


def score_hand(hand: list[Card], options: Optional[GameOptions] = None) -> ScoreBreakdown:
    """
    Calculate the score a hand would bank.

    Modifiers are applied here, when the hand is scored, by scanning the
    whole hand; drawing a modifier does not change anything by itself.

    Args:
        hand: Cards in hand.
        options: Table options (completion target and bonus).

    Returns:
        ScoreBreakdown with the total and its parts.
    """
    opts = _options(options)
    unique_sum = sum(unique_number_values(hand))
    multiplier = 1

    for card in hand:
        if not card.is_modifier:
            continue
        if card.modifier == ModifierType.DOUBLE_SCORE:
            multiplier *= 2
        else:
            unique_sum += MODIFIER_BONUS_POINTS[card.modifier.value]

    completion_bonus = opts.completion_bonus if has_flip7(hand, opts) else 0

    if is_busted(hand, opts):
        return ScoreBreakdown(total=0, unique_sum=unique_sum, multiplier=multiplier, completion_bonus=0)

    return ScoreBreakdown(
        total=unique_sum * multiplier + completion_bonus,
        unique_sum=unique_sum,
        multiplier=multiplier,
        completion_bonus=completion_bonus,
    )
