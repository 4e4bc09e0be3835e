"""
Test suite for Flip 7 deck building, shuffling and dealing.

Covers:
- Official card distribution and stable ids
- Injectable, reproducible shuffle
- deal_one / deal_many behavior on short and empty decks
- Card conservation across a played round

Run with: pytest test_deck.py -v
"""

import random
from collections import Counter

import pytest

from deck import build_deck, check_deck_integrity, deal_many, deal_one, shuffle_deck
from game import ActionType, CardType, ModifierType, Player, Table, TablePhase
from lobby import add_player, create_table, start_game
from models.results import EmptyDeckError
from rounds import initialize_round
from turns import hit, select_target, stay


# =============================================================================
# Deck Composition Tests
# =============================================================================

class TestBuildDeck:
    """Verify the deck matches the official frequency table."""

    def setup_method(self):
        self.deck = build_deck()

    def test_deck_has_111_cards(self):
        assert len(self.deck) == 111

    def test_number_card_frequencies(self):
        """Value N appears N+1 times, except 0 which appears once."""
        counts = Counter(c.value for c in self.deck if c.type == CardType.NUMBER)
        assert counts[0] == 1
        assert counts[1] == 2
        assert counts[7] == 8
        assert counts[12] == 13
        assert sum(counts.values()) == 91

    def test_action_cards_three_each(self):
        counts = Counter(c.action for c in self.deck if c.type == CardType.ACTION)
        assert counts == {
            ActionType.FREEZE: 3,
            ActionType.FLIP_THREE: 3,
            ActionType.SECOND_CHANCE: 3,
        }

    def test_modifier_cards(self):
        counts = Counter(c.modifier for c in self.deck if c.type == CardType.MODIFIER)
        assert counts[ModifierType.PLUS4] == 2
        assert counts[ModifierType.PLUS6] == 2
        assert counts[ModifierType.PLUS8] == 2
        assert counts[ModifierType.PLUS10] == 2
        assert counts[ModifierType.DOUBLE_SCORE] == 3

    def test_ids_unique_and_stable(self):
        ids = [c.id for c in self.deck]
        assert len(set(ids)) == 111
        assert ids[0] == "card_1"
        assert ids[-1] == "card_111"
        assert [c.id for c in build_deck()] == ids

    def test_cards_start_face_down(self):
        assert not any(c.face_up for c in self.deck)


# =============================================================================
# Shuffle Tests
# =============================================================================

class TestShuffle:

    def test_same_seed_same_order(self):
        deck = build_deck()
        a = shuffle_deck(deck, random.Random(42))
        b = shuffle_deck(deck, random.Random(42))
        assert [c.id for c in a] == [c.id for c in b]

    def test_different_seed_different_order(self):
        deck = build_deck()
        a = shuffle_deck(deck, random.Random(1))
        b = shuffle_deck(deck, random.Random(2))
        assert [c.id for c in a] != [c.id for c in b]

    def test_shuffle_keeps_every_card(self):
        deck = build_deck()
        shuffled = shuffle_deck(deck, random.Random(3))
        assert sorted(c.id for c in shuffled) == sorted(c.id for c in deck)

    def test_shuffle_does_not_mutate_input(self):
        deck = build_deck()
        before = [c.id for c in deck]
        shuffle_deck(deck, random.Random(4))
        assert [c.id for c in deck] == before


# =============================================================================
# Dealing Tests
# =============================================================================

class TestDealing:

    def test_deal_one_takes_front_card_face_up(self):
        deck = build_deck()
        card, rest = deal_one(deck)
        assert card.id == "card_1"
        assert card.face_up
        assert len(rest) == 110
        assert len(deck) == 111

    def test_deal_one_empty_deck_raises(self):
        with pytest.raises(EmptyDeckError):
            deal_one([])

    def test_deal_many(self):
        cards, rest = deal_many(build_deck(), 3)
        assert [c.id for c in cards] == ["card_1", "card_2", "card_3"]
        assert all(c.face_up for c in cards)
        assert len(rest) == 108

    def test_deal_many_short_deck_deals_what_is_left(self):
        deck = build_deck()[:2]
        cards, rest = deal_many(deck, 3)
        assert len(cards) == 2
        assert rest == []

    def test_deal_many_empty_deck(self):
        cards, rest = deal_many([], 3)
        assert cards == []
        assert rest == []


# =============================================================================
# Card Conservation Tests
# =============================================================================

class TestDeckIntegrity:

    def test_fresh_round_is_intact(self):
        table = Table(room_code="TEST01", players={
            "p1": Player(id="p1", name="Alice"),
            "p2": Player(id="p2", name="Bob"),
        })
        table = initialize_round(table, random.Random(5))
        assert check_deck_integrity(table)

    def test_missing_card_detected(self):
        table = Table(room_code="TEST01", players={"p1": Player(id="p1", name="Alice")})
        table = initialize_round(table, random.Random(5))
        table.deck = table.deck[1:]
        assert not check_deck_integrity(table)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_no_card_created_or_lost_during_play(self, seed):
        """Play a round with naive moves and check conservation after each one."""
        rng = random.Random(seed)
        table = create_table("TEST01", "p1", "Alice")
        table = add_player(table, "p2", "Bob").table
        table = add_player(table, "p3", "Cara").table
        table = start_game(table, "p1", rng).table

        for _ in range(200):
            if table.phase != TablePhase.PLAYING:
                break
            pid = table.current_turn
            if table.pending_action:
                targets = [p for p in table.players if p != pid and table.players[p].is_active]
                result = select_target(table, pid, targets[0])
            elif len(table.players[pid].hand) >= 4:
                result = stay(table, pid)
            else:
                result = hit(table, pid)
            assert result.ok, result.message
            table = result.table
            assert check_deck_integrity(table)
