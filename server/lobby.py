"""
Table lifecycle for Flip 7: seating, presence, starting and restarting.

Like the turn resolver, every operation returns an ActionResult and never
mutates the table it was given.
"""

import logging
import random
from collections import Counter
from typing import Optional

from game import GameOptions, Player, PlayerStatus, Table, TablePhase
from models.results import ActionResult, EngineError, ErrorKind
from rounds import finish_round, initialize_round, rank_players, should_end_round
from turns import eligible_targets, get_next_active_player

logger = logging.getLogger(__name__)


def create_table(
    room_code: str,
    host_id: str,
    host_name: str,
    options: Optional[GameOptions] = None,
) -> Table:
    """Create a waiting table with its host seated."""
    host = Player(id=host_id, name=host_name, is_host=True)
    table = Table(
        room_code=room_code,
        host_id=host_id,
        players={host_id: host},
        options=options or GameOptions(),
    )
    logger.info(f"Table {room_code} created by {host_name}")
    return table


def _require_host(table: Table, player_id: str) -> None:
    if player_id not in table.players:
        raise EngineError(f"Unknown player {player_id}", ErrorKind.PLAYER_NOT_FOUND)
    if table.host_id != player_id:
        raise EngineError("Only the host can do that", ErrorKind.NOT_HOST)


def add_player(table: Table, player_id: str, name: str) -> ActionResult:
    """
    Seat a new player at a waiting table.

    Names are unique per table, compared case-insensitively.
    """
    if table.phase != TablePhase.WAITING:
        return ActionResult.failure(ErrorKind.GAME_IN_PROGRESS, "Game has already started")
    if len(table.players) >= table.options.max_players:
        return ActionResult.failure(ErrorKind.ROOM_FULL, "Room is full")
    if player_id in table.players:
        return ActionResult.failure(ErrorKind.DUPLICATE_PLAYER, "Player already joined")
    if any(p.name.lower() == name.lower() for p in table.players.values()):
        return ActionResult.failure(ErrorKind.DUPLICATE_PLAYER, "Player name already taken")

    new_table = table.clone()
    new_table.players[player_id] = Player(id=player_id, name=name)
    if new_table.host_id is None:
        new_table.host_id = player_id
        new_table.players[player_id].is_host = True

    logger.info(f"{name} joined {table.room_code} ({len(new_table.players)} players)")
    return ActionResult.success(new_table, message=f"{name} joined")


def _unseat(table: Table, player_id: str) -> None:
    """
    Delete a player from an owned table.

    Their cards go to the discard pile so every card stays on the table. A
    winner pointing at them is re-ranked after a finished game and cleared
    otherwise.
    """
    player = table.players.pop(player_id)
    table.discard_pile.extend(player.hand)

    if table.winner == player_id:
        standings = rank_players(table.players) if table.phase == TablePhase.GAME_OVER else []
        table.winner = standings[0].id if standings else None


def _drop_out_of_round(table: Table, player_id: str, remove: bool = False) -> list:
    """
    Take a player out of the running round, mutating the given table.

    Clears a target selection they were making, or one that has no target
    left without them. Passes their turn on, and closes the round if nobody
    is left to act.
    """
    player = table.players[player_id]
    if player.status == PlayerStatus.ACTIVE:
        player.status = PlayerStatus.DISCONNECTED
        player.round_score = 0

    pending = table.pending_action
    if pending and pending.player_id == player_id:
        table.pending_action = None
    elif pending and not eligible_targets(table, pending.player_id):
        # The drawn card stays in the drawer's hand, as when drawn with no target
        logger.debug(f"No target left for {pending.action.value}, card kept in hand")
        table.pending_action = None
        table.current_turn = get_next_active_player(table.players, pending.player_id, table.round)

    if table.current_turn == player_id:
        table.current_turn = get_next_active_player(table.players, player_id, table.round)

    if remove:
        _unseat(table, player_id)

    if table.current_turn is None or should_end_round(table.players):
        return finish_round(table)
    return []


def remove_player(table: Table, player_id: str) -> ActionResult:
    """
    Remove a player who left the room.

    If the host leaves, the first remaining player in turn order becomes
    host. Leaving mid-round passes the turn on and may end the round.
    """
    if player_id not in table.players:
        return ActionResult.failure(ErrorKind.PLAYER_NOT_FOUND, f"Unknown player {player_id}")

    new_table = table.clone()
    produced = []
    if new_table.phase == TablePhase.PLAYING:
        produced = _drop_out_of_round(new_table, player_id, remove=True)
    else:
        _unseat(new_table, player_id)
    player = table.players[player_id]

    if new_table.host_id == player_id:
        new_host = next(iter(new_table.players.values()), None)
        new_table.host_id = new_host.id if new_host else None
        if new_host:
            new_host.is_host = True
            logger.info(f"Host of {table.room_code} passed to {new_host.name}")

    logger.info(f"{player.name} left {table.room_code}")
    return ActionResult.success(new_table, produced, f"{player.name} left")


def mark_disconnected(table: Table, player_id: str) -> ActionResult:
    """
    Record that a player lost their connection.

    During a round the player stops taking turns, exactly like a bust, and
    rejoins when the next round is dealt.
    """
    if player_id not in table.players:
        return ActionResult.failure(ErrorKind.PLAYER_NOT_FOUND, f"Unknown player {player_id}")

    new_table = table.clone()
    new_table.players[player_id].connected = False
    produced = []
    if new_table.phase == TablePhase.PLAYING:
        produced = _drop_out_of_round(new_table, player_id)

    logger.info(f"{player_id} disconnected from {table.room_code}")
    return ActionResult.success(new_table, produced, "Player disconnected")


def mark_reconnected(table: Table, player_id: str) -> ActionResult:
    """Record that a player is back. Mid-round they wait for the next deal."""
    if player_id not in table.players:
        return ActionResult.failure(ErrorKind.PLAYER_NOT_FOUND, f"Unknown player {player_id}")

    new_table = table.clone()
    player = new_table.players[player_id]
    player.connected = True
    if new_table.phase == TablePhase.WAITING and player.status == PlayerStatus.DISCONNECTED:
        player.status = PlayerStatus.ACTIVE

    logger.info(f"{player_id} reconnected to {table.room_code}")
    return ActionResult.success(new_table, message="Player reconnected")


def start_game(table: Table, player_id: str, rng: Optional[random.Random] = None) -> ActionResult:
    """Host starts the game: deal round 1."""
    try:
        _require_host(table, player_id)
    except EngineError as e:
        return ActionResult.from_error(e)
    if table.phase != TablePhase.WAITING:
        return ActionResult.failure(ErrorKind.GAME_IN_PROGRESS, "Game has already started")

    connected = sum(1 for p in table.players.values() if p.connected)
    if connected < table.options.min_players:
        return ActionResult.failure(
            ErrorKind.NOT_ENOUGH_PLAYERS,
            f"Need at least {table.options.min_players} players to start",
        )

    new_table = initialize_round(table, rng)
    logger.info(f"Game started in {table.room_code} with {connected} players")
    return ActionResult.success(new_table, message="Game started")


def start_next_round(table: Table, player_id: str, rng: Optional[random.Random] = None) -> ActionResult:
    """Host deals the next round after a round has ended."""
    try:
        _require_host(table, player_id)
    except EngineError as e:
        return ActionResult.from_error(e)
    if table.phase != TablePhase.ROUND_END:
        return ActionResult.failure(ErrorKind.ACTION_NOT_ALLOWED, "Round is not over")

    new_table = initialize_round(table, rng)
    return ActionResult.success(new_table, message=f"Round {new_table.round} started")


def restart_game(table: Table, player_id: str) -> ActionResult:
    """
    Host resets a finished game back to the lobby.

    Players stay seated in the same order; scores, hands and history are
    cleared. The host starts the new game with start_game().
    """
    try:
        _require_host(table, player_id)
    except EngineError as e:
        return ActionResult.from_error(e)
    if table.phase != TablePhase.GAME_OVER:
        return ActionResult.failure(ErrorKind.ACTION_NOT_ALLOWED, "Game is not over")

    players = {
        p.id: Player(
            id=p.id,
            name=p.name,
            is_host=p.id == table.host_id,
            connected=p.connected,
            status=PlayerStatus.ACTIVE if p.connected else PlayerStatus.DISCONNECTED,
        )
        for p in table.players.values()
    }
    new_table = Table(
        room_code=table.room_code,
        host_id=table.host_id,
        players=players,
        options=GameOptions.from_dict(table.options.to_dict()),
    )
    logger.info(f"Game restarted in {table.room_code}")
    return ActionResult.success(new_table, message="Game restarted")


def get_game_stats(table: Table) -> dict:
    """Summary counts for dashboards and logs."""
    statuses = Counter(p.status.value for p in table.players.values())
    return {
        "room_code": table.room_code,
        "phase": table.phase.value,
        "round": table.round,
        "max_rounds": table.options.max_rounds,
        "total_players": len(table.players),
        "connected_players": sum(1 for p in table.players.values() if p.connected),
        "active_players": statuses.get(PlayerStatus.ACTIVE.value, 0),
        "stayed_players": statuses.get(PlayerStatus.STAYED.value, 0),
        "busted_players": statuses.get(PlayerStatus.BUSTED.value, 0),
        "disconnected_players": statuses.get(PlayerStatus.DISCONNECTED.value, 0),
        "frozen_players": sum(1 for p in table.players.values() if p.is_frozen_in(table.round)),
        "deck_remaining": len(table.deck),
        "discard_count": len(table.discard_pile),
    }
