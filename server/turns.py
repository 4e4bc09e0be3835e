"""
Turn resolution for Flip 7.

Entry points take a table snapshot and a player id and return an
ActionResult. Preconditions are checked against the snapshot; the work is
done on a clone, so a rejected action never changes the caller's table.

Per-turn flow:
    AwaitingAction --hit/stay--> next player (or round end)
    AwaitingAction --hit draws Freeze/Flip Three--> AwaitingTargetSelection
    AwaitingTargetSelection --select_target--> next player (or round end)

While a target selection is pending only the drawing player's
select_target call is accepted.
"""

import logging
from typing import Optional

from deck import deal_many, deal_one
from game import ActionType, Card, PendingAction, Player, PlayerStatus, Table, TablePhase
from hand import apply_second_chance, can_use_second_chance, has_flip7, is_busted, score_hand
from models import effects
from models.effects import Effect
from models.results import ActionResult, EmptyDeckError, EngineError, ErrorKind
from rounds import finish_round, should_end_round

logger = logging.getLogger(__name__)

TARGETED_ACTIONS = (ActionType.FREEZE, ActionType.FLIP_THREE)


# =============================================================================
# Turn order
# =============================================================================


def get_next_active_player(
    players: dict[str, Player],
    from_id: Optional[str],
    current_round: int,
) -> Optional[str]:
    """
    Find whose turn comes after from_id.

    Walks turn order starting after from_id and wrapping around, skipping
    players who are not active or are frozen this round. from_id itself is
    checked last, so a lone remaining player keeps the turn.

    Returns:
        Player id, or None if nobody can take a turn.
    """
    order = list(players.keys())
    if not order:
        return None

    start = order.index(from_id) if from_id in players else -1
    for offset in range(1, len(order) + 1):
        player_id = order[(start + offset) % len(order)]
        if players[player_id].can_take_turn(current_round):
            return player_id
    return None


def eligible_targets(table: Table, player_id: str) -> list[str]:
    """Players a Freeze or Flip Three drawn by player_id may target."""
    return [
        p.id for p in table.players.values()
        if p.id != player_id and p.status == PlayerStatus.ACTIVE
    ]


# =============================================================================
# Precondition checks
# =============================================================================


def _require_turn(table: Table, player_id: str) -> Player:
    player = table.get_player(player_id)
    if player is None:
        raise EngineError(f"Unknown player {player_id}", ErrorKind.PLAYER_NOT_FOUND)
    if table.phase != TablePhase.PLAYING:
        raise EngineError("No round in progress", ErrorKind.ROOM_NOT_PLAYING)
    if table.current_turn != player_id:
        raise EngineError("It is not your turn", ErrorKind.NOT_YOUR_TURN)
    if player.status != PlayerStatus.ACTIVE:
        raise EngineError(f"Player is {player.status.value}", ErrorKind.PLAYER_NOT_ACTIVE)
    return player


def _require_action_turn(table: Table, player_id: str) -> Player:
    player = _require_turn(table, player_id)
    if table.pending_action is not None:
        raise EngineError(
            f"Choose a target for {table.pending_action.action.value} first",
            ErrorKind.TARGET_SELECTION_PENDING,
        )
    return player


def _require_target(table: Table, player_id: str, target_id: str, action: ActionType) -> None:
    _require_turn(table, player_id)
    pending = table.pending_action
    if pending is None or pending.player_id != player_id:
        raise EngineError("No target selection pending", ErrorKind.NO_PENDING_ACTION)
    if pending.action != action:
        raise EngineError(
            f"Pending action is {pending.action.value}, not {action.value}",
            ErrorKind.ACTION_NOT_ALLOWED,
        )
    if target_id == player_id:
        raise EngineError(f"Cannot target yourself with {action.value}", ErrorKind.INVALID_TARGET)
    target = table.get_player(target_id)
    if target is None or target.status != PlayerStatus.ACTIVE:
        raise EngineError(f"Invalid target for {action.value}", ErrorKind.INVALID_TARGET)


# =============================================================================
# Shared resolution steps (operate on an owned clone)
# =============================================================================


def _advance(table: Table, from_id: str, produced: list[Effect], message: str = "") -> ActionResult:
    """Pass the turn on from from_id, ending the round if nobody can act."""
    table.pending_action = None
    next_id = get_next_active_player(table.players, from_id, table.round)

    if next_id is None or should_end_round(table.players):
        produced.extend(finish_round(table))
        return ActionResult.success(table, produced, message or produced[-1].message)

    table.current_turn = next_id
    return ActionResult.success(table, produced, message)


def _complete(
    table: Table,
    player: Player,
    produced: list[Effect],
    source_id: Optional[str] = None,
) -> ActionResult:
    """Flip 7: bank the hand with its bonus and end the round at once."""
    total = score_hand(player.hand, table.options).total
    player.round_score = total
    player.total_score += total
    player.status = PlayerStatus.STAYED
    player.has_flip7 = True

    logger.info(f"{player.name} completed Flip 7 in {table.room_code} for {total}")
    produced.append(effects.completion(player.id, total, source_id))
    produced.extend(finish_round(table, instant_winner_id=player.id))
    return ActionResult.success(table, produced, f"{player.name} won the round with Flip 7")


def _use_second_chance(table: Table, player: Player, produced: list[Effect]) -> None:
    new_hand, removed, duplicate_value = apply_second_chance(player.hand, table.options)
    player.hand = new_hand
    table.discard_pile.extend(removed)
    logger.info(f"{player.name} used Second Chance on a duplicate {duplicate_value}")
    produced.append(effects.second_chance(player.id, removed, duplicate_value))


def _bust(
    player: Player,
    produced: list[Effect],
    card: Optional[Card] = None,
    source_id: Optional[str] = None,
) -> None:
    player.status = PlayerStatus.BUSTED
    player.round_score = 0
    logger.info(f"{player.name} busted")
    produced.append(effects.bust(player.id, card, source_id))


# =============================================================================
# Entry points
# =============================================================================


def hit(table: Table, player_id: str) -> ActionResult:
    """
    Draw one card for the current player.

    Failure kinds, in check order: PLAYER_NOT_FOUND, ROOM_NOT_PLAYING,
    NOT_YOUR_TURN, PLAYER_NOT_ACTIVE, TARGET_SELECTION_PENDING, EMPTY_DECK.
    EMPTY_DECK is terminal for the round; callers should follow it with
    rounds.force_end_round().

    A frozen player is skipped without drawing. Otherwise the drawn card is
    resolved in order: Flip 7, bust (or Second Chance), action card, plain
    card.
    """
    try:
        _require_action_turn(table, player_id)
        if not table.deck:
            raise EmptyDeckError("The deck is empty")
    except EngineError as e:
        return ActionResult.from_error(e)

    new_table = table.clone()
    player = new_table.players[player_id]

    if player.is_frozen_in(new_table.round):
        logger.debug(f"{player.name} is frozen, skipping turn")
        return _advance(new_table, player_id, [effects.frozen_skip(player_id)])

    card, new_table.deck = deal_one(new_table.deck)
    player.hand.append(card)
    logger.debug(f"{player.name} drew {card.label}")
    produced = [effects.draw(player_id, card)]
    opts = new_table.options

    if has_flip7(player.hand, opts):
        return _complete(new_table, player, produced)

    if is_busted(player.hand, opts):
        if can_use_second_chance(player.hand):
            _use_second_chance(new_table, player, produced)
            return _advance(new_table, player_id, produced, "Used Second Chance to avoid bust")
        _bust(player, produced, card)
        return _advance(new_table, player_id, produced, "Busted!")

    if card.is_action and card.action in TARGETED_ACTIONS:
        if eligible_targets(new_table, player_id):
            new_table.pending_action = PendingAction(
                player_id=player_id, action=card.action, card_id=card.id,
            )
            return ActionResult.success(
                new_table, produced, f"Choose a target for {card.action.value}",
            )
        logger.debug(f"No target for {card.action.value}, card kept in hand")

    return _advance(new_table, player_id, produced)


def stay(table: Table, player_id: str) -> ActionResult:
    """Bank the current player's hand and pass the turn."""
    try:
        _require_action_turn(table, player_id)
    except EngineError as e:
        return ActionResult.from_error(e)

    new_table = table.clone()
    player = new_table.players[player_id]
    total = score_hand(player.hand, new_table.options).total
    player.status = PlayerStatus.STAYED
    player.round_score = total

    logger.debug(f"{player.name} stayed with {total}")
    return _advance(
        new_table, player_id, [effects.stay(player_id, total)],
        f"Stayed with {total} points",
    )


def select_freeze_target(table: Table, player_id: str, target_id: str) -> ActionResult:
    """
    Resolve a pending Freeze against target_id.

    The target stays active but takes no further turns until the next
    round. Freezing an already frozen player is allowed.
    """
    try:
        _require_target(table, player_id, target_id, ActionType.FREEZE)
    except EngineError as e:
        return ActionResult.from_error(e)

    new_table = table.clone()
    card_id = new_table.pending_action.card_id
    card = next((c for c in new_table.players[player_id].hand if c.id == card_id), None)
    target = new_table.players[target_id]
    target.is_frozen = True
    target.frozen_until_round = new_table.round + 1

    logger.info(
        f"{player_id} froze {target.name} until round {target.frozen_until_round}",
        extra={"target_id": target_id},
    )
    produced = [effects.freeze(player_id, target_id, card, target.frozen_until_round)]
    return _advance(new_table, player_id, produced, f"Froze {target.name}")


def select_flip_three_target(table: Table, player_id: str, target_id: str) -> ActionResult:
    """
    Resolve a pending Flip Three against target_id.

    Deals up to flip_three_count cards to the target, then checks the
    target's hand for Flip 7 or a bust. Action cards dealt this way do not
    trigger. The turn passes on from the acting player, not the target.
    """
    try:
        _require_target(table, player_id, target_id, ActionType.FLIP_THREE)
    except EngineError as e:
        return ActionResult.from_error(e)

    new_table = table.clone()
    opts = new_table.options
    target = new_table.players[target_id]

    dealt, new_table.deck = deal_many(new_table.deck, opts.flip_three_count)
    target.hand.extend(dealt)
    new_table.pending_action = None
    produced = [effects.flip_three(player_id, target_id, dealt)]
    logger.debug(
        f"{player_id} flipped {[c.label for c in dealt]} onto {target.name}",
        extra={"target_id": target_id},
    )

    if has_flip7(target.hand, opts):
        return _complete(new_table, target, produced, source_id=player_id)

    while is_busted(target.hand, opts) and can_use_second_chance(target.hand):
        _use_second_chance(new_table, target, produced)

    if is_busted(target.hand, opts):
        _bust(target, produced, dealt[-1] if dealt else None, source_id=player_id)

    return _advance(new_table, player_id, produced, f"Made {target.name} flip {len(dealt)} cards")


def select_target(table: Table, player_id: str, target_id: str) -> ActionResult:
    """Resolve whichever targeted action is pending for player_id."""
    pending = table.pending_action
    if pending is None or pending.player_id != player_id:
        if player_id not in table.players:
            return ActionResult.failure(ErrorKind.PLAYER_NOT_FOUND, f"Unknown player {player_id}")
        return ActionResult.failure(ErrorKind.NO_PENDING_ACTION, "No target selection pending")

    if pending.action == ActionType.FREEZE:
        return select_freeze_target(table, player_id, target_id)
    return select_flip_three_target(table, player_id, target_id)
