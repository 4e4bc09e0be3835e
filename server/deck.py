"""
Deck building, shuffling and dealing for Flip 7.

Decks are plain lists of Card drawn from the front. Functions here never
mutate their input; they return new lists. The random source is injected
into shuffle_deck() and nowhere else, so a seeded random.Random makes a
whole game reproducible.
"""

import logging
import random
from collections import Counter
from typing import Optional

from constants import ACTION_CARD_COUNTS, MODIFIER_CARD_COUNTS, NUMBER_CARD_COUNTS
from game import ActionType, Card, ModifierType, Table
from models.results import EmptyDeckError

logger = logging.getLogger(__name__)


def build_deck() -> list[Card]:
    """
    Build a full, unshuffled Flip 7 deck.

    Cards are enumerated numbers first (0 up to 12), then action cards,
    then modifiers, and numbered card_1, card_2, ... in that order, so the
    same ids always name the same cards.

    Returns:
        List of 111 face-down cards.
    """
    cards: list[Card] = []

    def next_id() -> str:
        return f"card_{len(cards) + 1}"

    for value, count in NUMBER_CARD_COUNTS.items():
        for _ in range(count):
            cards.append(Card.make_number(next_id(), value))

    for action, count in ACTION_CARD_COUNTS.items():
        for _ in range(count):
            cards.append(Card.make_action(next_id(), ActionType(action)))

    for modifier, count in MODIFIER_CARD_COUNTS.items():
        for _ in range(count):
            cards.append(Card.make_modifier(next_id(), ModifierType(modifier)))

    return cards


def shuffle_deck(deck: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Return a shuffled copy of the deck.

    Args:
        deck: Cards to shuffle.
        rng: Random source. Pass random.Random(seed) for reproducible order.

    Returns:
        New list in shuffled order.
    """
    shuffled = list(deck)
    (rng or random.Random()).shuffle(shuffled)
    return shuffled


def deal_one(deck: list[Card]) -> tuple[Card, list[Card]]:
    """
    Deal the front card of the deck face up.

    Raises:
        EmptyDeckError: If the deck has no cards left.

    Returns:
        (card, remaining deck)
    """
    if not deck:
        raise EmptyDeckError("The deck is empty")
    card = deck[0].revealed()
    return card, list(deck[1:])


def deal_many(deck: list[Card], count: int) -> tuple[list[Card], list[Card]]:
    """
    Deal up to count cards face up.

    A short deck deals what it has instead of failing, so Flip Three still
    resolves near the end of a round.

    Returns:
        (cards dealt, remaining deck)
    """
    n = max(0, min(count, len(deck)))
    if n < count:
        logger.debug(f"Short deal: wanted {count}, deck has {len(deck)}")
    return [card.revealed() for card in deck[:n]], list(deck[n:])


def check_deck_integrity(table: Table) -> bool:
    """
    Check that no card was created or lost.

    Every card of a full deck must be on the table exactly once, across the
    deck, the discard pile and all hands. Only meaningful once a round has
    been dealt.
    """
    expected = Counter(card.id for card in build_deck())
    actual = Counter(card.id for card in table.all_cards())
    if actual != expected:
        missing = sorted((expected - actual).keys())
        extra = sorted((actual - expected).keys())
        logger.warning(
            f"Deck integrity check failed for {table.room_code}: "
            f"missing={missing[:5]} extra={extra[:5]}"
        )
        return False
    return True
