"""
Test suite for Flip 7 turn resolution.

Covers:
- Precondition checks and their order
- Hit outcomes: plain draw, bust, Second Chance, Flip 7
- Freeze and Flip Three target selection
- Turn order (skipping inactive and frozen players)
- Snapshot semantics (the input table is never changed)

Run with: pytest test_turns.py -v
"""

import itertools

from game import ActionType, Card, ModifierType, PendingAction, Player, PlayerStatus, Table, TablePhase
from models.effects import EffectType
from models.results import ErrorKind
from turns import (
    eligible_targets,
    get_next_active_player,
    hit,
    select_flip_three_target,
    select_freeze_target,
    select_target,
    stay,
)

_ids = itertools.count(1)


def num(value: int) -> Card:
    return Card.make_number(f"t{next(_ids)}", value)


def action(kind: ActionType) -> Card:
    return Card.make_action(f"t{next(_ids)}", kind)


def make_table(hands: dict, deck: list, current: str = None, round_number: int = 1) -> Table:
    """Playing table with the given hands (in turn order) and a stacked deck."""
    players = {
        pid: Player(id=pid, name=pid.upper(), hand=[c.revealed() for c in hand])
        for pid, hand in hands.items()
    }
    first = next(iter(players))
    players[first].is_host = True
    return Table(
        room_code="TEST01",
        host_id=first,
        players=players,
        deck=list(deck),
        phase=TablePhase.PLAYING,
        round=round_number,
        current_turn=current or first,
    )


def effect_types(result) -> list:
    return [e.type for e in result.effects]


# =============================================================================
# Preconditions
# =============================================================================

class TestPreconditions:

    def setup_method(self):
        self.table = make_table({"p1": [], "p2": []}, [num(3), num(5)])

    def test_unknown_player(self):
        result = hit(self.table, "ghost")
        assert not result.ok
        assert result.error_kind == ErrorKind.PLAYER_NOT_FOUND

    def test_not_playing(self):
        self.table.phase = TablePhase.WAITING
        assert hit(self.table, "p1").error_kind == ErrorKind.ROOM_NOT_PLAYING
        assert stay(self.table, "p1").error_kind == ErrorKind.ROOM_NOT_PLAYING

    def test_not_your_turn(self):
        assert hit(self.table, "p2").error_kind == ErrorKind.NOT_YOUR_TURN
        assert stay(self.table, "p2").error_kind == ErrorKind.NOT_YOUR_TURN

    def test_not_active(self):
        self.table.players["p1"].status = PlayerStatus.STAYED
        assert hit(self.table, "p1").error_kind == ErrorKind.PLAYER_NOT_ACTIVE

    def test_target_selection_pending_blocks_hit_and_stay(self):
        self.table.pending_action = PendingAction("p1", ActionType.FREEZE, "x")
        assert hit(self.table, "p1").error_kind == ErrorKind.TARGET_SELECTION_PENDING
        assert stay(self.table, "p1").error_kind == ErrorKind.TARGET_SELECTION_PENDING

    def test_empty_deck(self):
        self.table.deck = []
        result = hit(self.table, "p1")
        assert result.error_kind == ErrorKind.EMPTY_DECK
        assert result.table is None

    def test_phase_checked_before_turn(self):
        self.table.phase = TablePhase.ROUND_END
        assert hit(self.table, "p2").error_kind == ErrorKind.ROOM_NOT_PLAYING

    def test_failure_leaves_table_unchanged(self):
        before = self.table.to_dict()
        hit(self.table, "p2")
        assert self.table.to_dict() == before


# =============================================================================
# Hit
# =============================================================================

class TestHit:

    def test_plain_draw_passes_turn(self):
        table = make_table({"p1": [num(2)], "p2": [num(4)]}, [num(9), num(1)])
        result = hit(table, "p1")

        assert result.ok
        assert effect_types(result) == [EffectType.DRAW]
        assert result.effect.cards[0].value == 9
        new = result.table
        assert [c.value for c in new.players["p1"].hand] == [2, 9]
        assert new.players["p1"].hand[-1].face_up
        assert len(new.deck) == 1
        assert new.current_turn == "p2"

    def test_input_table_not_mutated(self):
        table = make_table({"p1": [num(2)], "p2": [num(4)]}, [num(9)])
        before = table.to_dict()
        result = hit(table, "p1")
        assert result.ok
        assert table.to_dict() == before

    def test_duplicate_busts(self):
        table = make_table({"p1": [num(6)], "p2": [num(4)]}, [num(6), num(1)])
        result = hit(table, "p1")

        assert result.ok
        assert effect_types(result) == [EffectType.DRAW, EffectType.BUST]
        p1 = result.table.players["p1"]
        assert p1.status == PlayerStatus.BUSTED
        assert p1.round_score == 0
        assert result.table.current_turn == "p2"

    def test_second_chance_saves_bust(self):
        sc = action(ActionType.SECOND_CHANCE)
        table = make_table({"p1": [num(6), sc], "p2": [num(4)]}, [num(6), num(1)])
        result = hit(table, "p1")

        assert effect_types(result) == [EffectType.DRAW, EffectType.SECOND_CHANCE]
        p1 = result.table.players["p1"]
        assert p1.status == PlayerStatus.ACTIVE
        assert [c.value for c in p1.hand] == [6]
        assert len(result.table.discard_pile) == 2
        assert result.effects[1].data["duplicate_value"] == 6
        assert result.table.current_turn == "p2"

    def test_flip7_ends_round(self):
        table = make_table(
            {"p1": [num(v) for v in (1, 2, 3, 4, 5, 6)], "p2": [num(9)]},
            [num(7), num(1)],
        )
        result = hit(table, "p1")

        assert effect_types(result) == [EffectType.DRAW, EffectType.COMPLETION, EffectType.ROUND_END]
        new = result.table
        assert new.phase == TablePhase.ROUND_END
        assert new.winner == "p1"
        assert new.current_turn is None
        p1 = new.players["p1"]
        assert p1.has_flip7
        assert p1.round_score == 28 + 15
        assert p1.total_score == 28 + 15  # banked once
        # Active players bank their hands at round end
        assert new.players["p2"].total_score == 9
        assert new.players["p2"].status == PlayerStatus.STAYED

    def test_drawing_a_seven_is_not_flip7(self):
        """Completion needs seven distinct values, not the 7 card."""
        table = make_table({"p1": [], "p2": []}, [num(3), num(5), num(7)])

        result = hit(table, "p1")
        assert result.table.current_turn == "p2"
        result = hit(result.table, "p2")
        assert result.table.current_turn == "p1"
        result = hit(result.table, "p1")

        assert result.ok
        assert effect_types(result) == [EffectType.DRAW]
        new = result.table
        assert new.phase == TablePhase.PLAYING
        assert not new.players["p1"].has_flip7
        assert new.players["p1"].status == PlayerStatus.ACTIVE
        assert [c.value for c in new.players["p1"].hand] == [3, 7]

    def test_modifier_draw_does_not_bust(self):
        table = make_table({"p1": [num(5)], "p2": []}, [Card.make_modifier("m", ModifierType.PLUS4)])
        result = hit(table, "p1")
        assert result.table.players["p1"].status == PlayerStatus.ACTIVE
        assert result.table.current_turn == "p2"

    def test_second_chance_draw_kept(self):
        table = make_table({"p1": [], "p2": []}, [action(ActionType.SECOND_CHANCE)])
        result = hit(table, "p1")
        assert result.table.players["p1"].hand[0].action == ActionType.SECOND_CHANCE
        assert result.table.pending_action is None
        assert result.table.current_turn == "p2"

    def test_frozen_player_skips_without_drawing(self):
        table = make_table({"p1": [num(2)], "p2": [num(4)]}, [num(9)])
        table.players["p1"].is_frozen = True
        table.players["p1"].frozen_until_round = 2
        result = hit(table, "p1")

        assert effect_types(result) == [EffectType.FROZEN_SKIP]
        assert len(result.table.players["p1"].hand) == 1
        assert len(result.table.deck) == 1
        assert result.table.current_turn == "p2"


# =============================================================================
# Stay
# =============================================================================

class TestStay:

    def test_stay_banks_hand_score(self):
        table = make_table(
            {"p1": [num(8), num(3), Card.make_modifier("m", ModifierType.DOUBLE_SCORE)], "p2": []},
            [num(1)],
        )
        result = stay(table, "p1")

        assert effect_types(result) == [EffectType.STAY]
        assert result.effect.data["score"] == 22
        p1 = result.table.players["p1"]
        assert p1.status == PlayerStatus.STAYED
        assert p1.round_score == 22
        assert p1.total_score == 0
        assert result.table.current_turn == "p2"

    def test_last_stay_ends_round(self):
        table = make_table({"p1": [num(8)], "p2": [num(3)]}, [num(1)], current="p2")
        table.players["p1"].status = PlayerStatus.STAYED
        table.players["p1"].round_score = 8
        result = stay(table, "p2")

        assert effect_types(result) == [EffectType.STAY, EffectType.ROUND_END]
        assert result.effects[1].data["scores"] == {"p1": 8, "p2": 3}
        assert result.table.phase == TablePhase.ROUND_END
        assert result.table.players["p1"].total_score == 8
        assert result.table.players["p2"].total_score == 3
        assert result.table.winner is None

    def test_lone_active_player_keeps_turn(self):
        table = make_table({"p1": [num(8)], "p2": [num(3)], "p3": []}, [num(1)])
        table.players["p3"].status = PlayerStatus.BUSTED
        result = stay(table, "p1")
        assert result.table.current_turn == "p2"
        result = hit(result.table, "p2")
        assert result.table.current_turn == "p2"


# =============================================================================
# Freeze
# =============================================================================

class TestFreeze:

    def setup_method(self):
        self.freeze = action(ActionType.FREEZE)
        self.table = make_table(
            {"p1": [num(2)], "p2": [num(4)], "p3": [num(6)]},
            [self.freeze, num(9), num(10)],
        )

    def test_draw_freeze_awaits_target(self):
        result = hit(self.table, "p1")

        assert result.ok
        new = result.table
        assert new.pending_action == PendingAction("p1", ActionType.FREEZE, self.freeze.id)
        assert new.current_turn == "p1"
        assert new.get_state("p1")["awaiting_target"]
        assert not new.get_state("p2")["awaiting_target"]

    def test_freeze_target_skipped_for_rest_of_round(self):
        table = hit(self.table, "p1").table
        result = select_target(table, "p1", "p2")

        assert effect_types(result) == [EffectType.FREEZE]
        assert result.effect.target_id == "p2"
        assert result.effect.cards[0].id == self.freeze.id
        new = result.table
        p2 = new.players["p2"]
        assert p2.is_frozen
        assert p2.frozen_until_round == 2
        assert p2.status == PlayerStatus.ACTIVE
        assert new.pending_action is None
        assert new.current_turn == "p3"
        # Freeze card stays with the player who drew it
        assert new.players["p1"].hand[-1].id == self.freeze.id

        assert get_next_active_player(new.players, "p1", new.round) == "p3"
        assert get_next_active_player(new.players, "p1", new.round + 1) == "p2"

    def test_frozen_player_banks_when_round_ends(self):
        table = hit(self.table, "p1").table
        table = select_target(table, "p1", "p2").table
        table = stay(table, "p3").table
        result = stay(table, "p1")

        assert result.table.phase == TablePhase.ROUND_END
        assert result.table.players["p2"].total_score == 4
        assert result.table.players["p2"].status == PlayerStatus.STAYED

    def test_freeze_with_no_target_stays_in_hand(self):
        table = make_table({"p1": [num(2)], "p2": [num(4)]}, [self.freeze, num(9)])
        table.players["p2"].status = PlayerStatus.STAYED
        result = hit(table, "p1")

        assert result.ok
        assert result.table.pending_action is None
        assert result.table.players["p1"].hand[-1].id == self.freeze.id
        assert result.table.current_turn == "p1"

    def test_cannot_target_self(self):
        table = hit(self.table, "p1").table
        assert select_target(table, "p1", "p1").error_kind == ErrorKind.INVALID_TARGET

    def test_cannot_target_inactive_player(self):
        table = hit(self.table, "p1").table
        table.players["p3"].status = PlayerStatus.BUSTED
        assert select_target(table, "p1", "p3").error_kind == ErrorKind.INVALID_TARGET
        assert select_target(table, "p1", "ghost").error_kind == ErrorKind.INVALID_TARGET

    def test_other_player_cannot_select(self):
        table = hit(self.table, "p1").table
        assert select_target(table, "p2", "p3").error_kind == ErrorKind.NO_PENDING_ACTION

    def test_select_without_pending(self):
        assert select_target(self.table, "p1", "p2").error_kind == ErrorKind.NO_PENDING_ACTION
        assert select_target(self.table, "ghost", "p2").error_kind == ErrorKind.PLAYER_NOT_FOUND

    def test_wrong_resolver_for_pending_action(self):
        table = hit(self.table, "p1").table
        result = select_flip_three_target(table, "p1", "p2")
        assert result.error_kind == ErrorKind.ACTION_NOT_ALLOWED

    def test_eligible_targets(self):
        self.table.players["p3"].status = PlayerStatus.STAYED
        assert eligible_targets(self.table, "p1") == ["p2"]


# =============================================================================
# Flip Three
# =============================================================================

class TestFlipThree:

    def _pending(self, target_hand: list, dealt: list) -> Table:
        flip = action(ActionType.FLIP_THREE)
        table = make_table({"p1": [num(2)], "p2": target_hand, "p3": [num(11)]}, [flip] + dealt)
        return hit(table, "p1").table

    def test_deals_three_to_target(self):
        table = self._pending([num(5)], [num(9), num(1), num(12), num(3)])
        assert table.pending_action.action == ActionType.FLIP_THREE

        result = select_target(table, "p1", "p2")
        assert effect_types(result) == [EffectType.FLIP_THREE]
        assert [c.value for c in result.effect.cards] == [9, 1, 12]
        new = result.table
        assert [c.value for c in new.players["p2"].hand] == [5, 9, 1, 12]
        assert len(new.deck) == 1
        # Turn passes on from the acting player
        assert new.current_turn == "p2"

    def test_target_busts(self):
        table = self._pending([num(5)], [num(9), num(5), num(1)])
        result = select_flip_three_target(table, "p1", "p2")

        assert effect_types(result) == [EffectType.FLIP_THREE, EffectType.BUST]
        bust = result.effects[1]
        assert bust.player_id == "p1"
        assert bust.target_id == "p2"
        assert result.table.players["p2"].status == PlayerStatus.BUSTED
        assert result.table.players["p2"].round_score == 0
        assert result.table.current_turn == "p3"

    def test_target_second_chance(self):
        sc = action(ActionType.SECOND_CHANCE)
        table = self._pending([num(5), sc], [num(9), num(5), num(1)])
        result = select_target(table, "p1", "p2")

        assert effect_types(result) == [EffectType.FLIP_THREE, EffectType.SECOND_CHANCE]
        p2 = result.table.players["p2"]
        assert p2.status == PlayerStatus.ACTIVE
        assert sorted(c.value for c in p2.hand) == [1, 5, 9]

    def test_target_completes_flip7(self):
        table = self._pending([num(v) for v in (1, 2, 3, 4)], [num(5), num(6), num(7)])
        result = select_target(table, "p1", "p2")

        assert effect_types(result) == [
            EffectType.FLIP_THREE, EffectType.COMPLETION, EffectType.ROUND_END,
        ]
        completion = result.effects[1]
        assert completion.player_id == "p1"
        assert completion.target_id == "p2"
        new = result.table
        assert new.phase == TablePhase.ROUND_END
        assert new.winner == "p2"
        assert new.players["p2"].total_score == 28 + 15

    def test_action_cards_dealt_do_not_trigger(self):
        freeze = action(ActionType.FREEZE)
        table = self._pending([num(5)], [freeze, num(9), num(1)])
        result = select_target(table, "p1", "p2")
        assert result.table.pending_action is None
        assert freeze.id in [c.id for c in result.table.players["p2"].hand]

    def test_short_deck_deals_remaining(self):
        table = self._pending([num(5)], [num(9)])
        result = select_target(table, "p1", "p2")
        assert [c.value for c in result.effect.cards] == [9]
        assert result.table.deck == []


# =============================================================================
# Turn Order
# =============================================================================

class TestTurnOrder:

    def setup_method(self):
        self.players = {pid: Player(id=pid, name=pid) for pid in ("a", "b", "c", "d")}

    def test_next_in_order(self):
        assert get_next_active_player(self.players, "a", 1) == "b"

    def test_wraps_around(self):
        assert get_next_active_player(self.players, "d", 1) == "a"

    def test_skips_inactive(self):
        self.players["b"].status = PlayerStatus.BUSTED
        self.players["c"].status = PlayerStatus.STAYED
        assert get_next_active_player(self.players, "a", 1) == "d"

    def test_skips_frozen(self):
        self.players["b"].is_frozen = True
        self.players["b"].frozen_until_round = 2
        assert get_next_active_player(self.players, "a", 1) == "c"

    def test_returns_self_when_alone(self):
        for pid in ("b", "c", "d"):
            self.players[pid].status = PlayerStatus.BUSTED
        assert get_next_active_player(self.players, "a", 1) == "a"

    def test_none_when_nobody_can_act(self):
        for player in self.players.values():
            player.status = PlayerStatus.STAYED
        assert get_next_active_player(self.players, "a", 1) is None

    def test_unknown_start_begins_at_first(self):
        assert get_next_active_player(self.players, None, 1) == "a"
        assert get_next_active_player({}, None, 1) is None
