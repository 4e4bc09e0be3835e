"""Client message handlers for Flip 7.

Each handler corresponds to a single message type from the client.
Payloads are validated with pydantic before they reach the engine, and
handlers are dispatched via the HANDLERS dict.
"""

import logging
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from lobby import add_player, remove_player, restart_game, start_game, start_next_round
from models.results import ActionResult, ErrorKind
from room import Room
from turns import hit, select_target, stay

logger = logging.getLogger(__name__)


# =============================================================================
# Message Models
# =============================================================================


class ClientMessage(BaseModel):
    """Fields shared by every client message."""
    player_id: str = Field(min_length=1, max_length=64)
    version: Optional[int] = Field(default=None, ge=0)
    """Room version the client acted on; omit to skip the staleness check."""


class JoinMessage(ClientMessage):
    """Take a seat at a waiting table."""
    type: Literal["join"]
    player_name: str = Field(min_length=1, max_length=20)


class LeaveMessage(ClientMessage):
    type: Literal["leave"]


class StartGameMessage(ClientMessage):
    type: Literal["start_game"]


class HitMessage(ClientMessage):
    type: Literal["hit"]


class StayMessage(ClientMessage):
    type: Literal["stay"]


class SelectTargetMessage(ClientMessage):
    """Choose who a pending Freeze or Flip Three lands on."""
    type: Literal["select_target"]
    target_id: str = Field(min_length=1, max_length=64)


class NextRoundMessage(ClientMessage):
    type: Literal["next_round"]


class RestartGameMessage(ClientMessage):
    type: Literal["restart_game"]


AnyMessage = Annotated[
    Union[
        JoinMessage,
        LeaveMessage,
        StartGameMessage,
        HitMessage,
        StayMessage,
        SelectTargetMessage,
        NextRoundMessage,
        RestartGameMessage,
    ],
    Field(discriminator="type"),
]

_message_adapter = TypeAdapter(AnyMessage)


def parse_message(data: dict) -> AnyMessage:
    """
    Validate a raw client payload.

    Raises:
        ValidationError: If the payload does not match any message type.
    """
    return _message_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Lobby handlers
# ---------------------------------------------------------------------------

async def handle_join(msg: JoinMessage, room: Room) -> ActionResult:
    return await room.apply(
        lambda t: add_player(t, msg.player_id, msg.player_name.strip()),
        msg.player_id, msg.version,
    )


async def handle_leave(msg: LeaveMessage, room: Room) -> ActionResult:
    return await room.apply(lambda t: remove_player(t, msg.player_id), msg.player_id, msg.version)


async def handle_start_game(msg: StartGameMessage, room: Room) -> ActionResult:
    return await room.apply(
        lambda t: start_game(t, msg.player_id, room.rng), msg.player_id, msg.version,
    )


async def handle_next_round(msg: NextRoundMessage, room: Room) -> ActionResult:
    return await room.apply(
        lambda t: start_next_round(t, msg.player_id, room.rng), msg.player_id, msg.version,
    )


async def handle_restart_game(msg: RestartGameMessage, room: Room) -> ActionResult:
    return await room.apply(lambda t: restart_game(t, msg.player_id), msg.player_id, msg.version)


# ---------------------------------------------------------------------------
# Turn action handlers
# ---------------------------------------------------------------------------

async def handle_hit(msg: HitMessage, room: Room) -> ActionResult:
    return await room.apply(lambda t: hit(t, msg.player_id), msg.player_id, msg.version)


async def handle_stay(msg: StayMessage, room: Room) -> ActionResult:
    return await room.apply(lambda t: stay(t, msg.player_id), msg.player_id, msg.version)


async def handle_select_target(msg: SelectTargetMessage, room: Room) -> ActionResult:
    return await room.apply(
        lambda t: select_target(t, msg.player_id, msg.target_id), msg.player_id, msg.version,
    )


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "join": handle_join,
    "leave": handle_leave,
    "start_game": handle_start_game,
    "hit": handle_hit,
    "stay": handle_stay,
    "select_target": handle_select_target,
    "next_round": handle_next_round,
    "restart_game": handle_restart_game,
}


async def dispatch(data: dict, room: Room) -> ActionResult:
    """
    Validate a client payload and run its handler against the room.

    Invalid payloads are rejected with INVALID_MESSAGE; nothing is raised.
    After a successful human action, any CPU players who are up next take
    their turns.
    """
    try:
        msg = parse_message(data)
    except ValidationError as e:
        logger.warning(f"Invalid message for {room.code}: {e.error_count()} error(s)")
        return ActionResult.failure(ErrorKind.INVALID_MESSAGE, _describe(e))

    result = await HANDLERS[msg.type](msg, room)
    if result.ok and room.cpu_ids:
        await room.run_cpu_turns()
    return result


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]
