"""
Round and game evaluation for Flip 7.

Decides when a round is over, banks round scores into totals, ranks the
players, decides whether the game is over, and deals the next round.

Ranking (used for every winner decision):
    1. Highest total score
    2. Highest score this round
    3. Fewest cards in hand
Players still tied keep turn order.
"""

import logging
import random
from typing import Optional

from deck import build_deck, deal_one, shuffle_deck
from game import Player, PlayerStatus, RoundRecord, Table, TablePhase
from hand import score_hand
from models import effects
from models.effects import Effect
from models.results import ActionResult, ErrorKind

logger = logging.getLogger(__name__)


def should_end_round(players: dict[str, Player]) -> bool:
    """True if no player is still active."""
    return not any(player.status == PlayerStatus.ACTIVE for player in players.values())


def should_end_game(table: Table) -> bool:
    """
    True if someone reached the goal score or the round limit is reached.

    Call after the finished round's scores have been banked.
    """
    reached_goal = any(
        player.total_score >= table.options.goal_score
        for player in table.players.values()
    )
    return reached_goal or table.round >= table.options.max_rounds


def rank_players(players: dict[str, Player]) -> list[Player]:
    """Players ordered best first. The first entry is the winner."""
    return sorted(
        players.values(),
        key=lambda p: (-p.total_score, -p.round_score, len(p.hand)),
    )


def finish_round(table: Table, instant_winner_id: Optional[str] = None) -> list[Effect]:
    """
    Bank scores and close the round, mutating the given table.

    Active players (including frozen ones) bank their hand and become
    stayed; stayed players bank their locked round score; busted and
    disconnected players bank nothing. The Flip 7 winner banked their
    points when they completed, so they are skipped here.

    Only for tables the caller already owns (a clone). Use end_round()
    on a shared snapshot.

    Returns:
        RoundEnd effect, followed by GameOver if the game ended.
    """
    opts = table.options
    scores: dict[str, int] = {}

    for player in table.players.values():
        if player.id == instant_winner_id:
            pass
        elif player.status == PlayerStatus.ACTIVE:
            total = score_hand(player.hand, opts).total
            player.status = PlayerStatus.STAYED
            player.round_score = total
            player.total_score += total
        elif player.status == PlayerStatus.STAYED:
            player.total_score += player.round_score
        else:
            player.round_score = 0

        scores[player.id] = player.round_score
        player.history.append(RoundRecord(
            round=table.round,
            cards=list(player.hand),
            score=player.round_score,
            status=player.status,
            flip7_bonus=player.has_flip7,
        ))

    table.current_turn = None
    table.pending_action = None

    produced = [effects.round_end(table.round, scores, instant_winner_id)]
    standings = rank_players(table.players)

    if standings and should_end_game(table):
        winner = standings[0]
        table.phase = TablePhase.GAME_OVER
        table.winner = winner.id
        produced.append(effects.game_over(
            winner.id, winner.total_score, [player.id for player in standings],
        ))
        logger.info(
            f"Game over in {table.room_code} after round {table.round}: "
            f"{winner.name} wins with {winner.total_score}"
        )
    else:
        table.phase = TablePhase.ROUND_END
        table.winner = instant_winner_id
        logger.info(f"Round {table.round} ended in {table.room_code}: {scores}")

    return produced


def end_round(table: Table, instant_winner_id: Optional[str] = None) -> ActionResult:
    """
    End the current round on a copy of the table.

    Args:
        table: Table snapshot in the playing phase.
        instant_winner_id: Player who ended the round with Flip 7, if any.

    Returns:
        ActionResult with the closed-out table and RoundEnd/GameOver effects.
    """
    if table.phase != TablePhase.PLAYING:
        return ActionResult.failure(ErrorKind.ROOM_NOT_PLAYING, "No round in progress")
    if instant_winner_id is not None and instant_winner_id not in table.players:
        return ActionResult.failure(ErrorKind.PLAYER_NOT_FOUND, f"Unknown player {instant_winner_id}")

    new_table = table.clone()
    produced = finish_round(new_table, instant_winner_id)
    return ActionResult.success(new_table, produced, message=produced[-1].message)


def force_end_round(table: Table, reason: str = "deck exhausted") -> ActionResult:
    """
    End a round that cannot continue, e.g. after a draw from an empty deck.

    Active players bank their hands as if they had stayed.
    """
    if table.phase == TablePhase.PLAYING:
        logger.warning(f"Forcing end of round {table.round} in {table.room_code}: {reason}")
    return end_round(table)


def initialize_round(table: Table, rng: Optional[random.Random] = None) -> Table:
    """
    Deal the next round.

    Builds and shuffles a fresh deck, empties the discard pile, lifts
    freezes that expire this round, resets per-round fields, and deals one
    face-up card to every connected player. Disconnected players are dealt
    nothing and sit the round out.

    Args:
        table: Table between rounds (or waiting to start).
        rng: Random source for the shuffle.

    Returns:
        New table in the playing phase with round incremented.
    """
    new_table = table.clone()
    next_round = new_table.round + 1
    deck = shuffle_deck(build_deck(), rng)

    for player in new_table.players.values():
        player.hand = []
        player.round_score = 0
        player.has_flip7 = False

        if player.frozen_until_round is not None and next_round >= player.frozen_until_round:
            player.is_frozen = False
            player.frozen_until_round = None

        if not player.connected:
            player.status = PlayerStatus.DISCONNECTED
            continue

        card, deck = deal_one(deck)
        player.hand.append(card)
        player.status = PlayerStatus.ACTIVE

    new_table.deck = deck
    new_table.discard_pile = []
    new_table.round = next_round
    new_table.phase = TablePhase.PLAYING
    new_table.pending_action = None
    new_table.winner = None
    new_table.current_turn = next(
        (p.id for p in new_table.players.values() if p.can_take_turn(next_round)),
        None,
    )

    logger.info(
        f"Round {next_round} dealt in {new_table.room_code} "
        f"({len(new_table.deck)} cards left)"
    )
    return new_table
