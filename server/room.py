"""
Room management for multiplayer Flip 7 games.

This module owns the authoritative Table for each room in this process and
serializes every mutation through the room's lock, so at most one action
per room is in flight. Each accepted action bumps the room's version;
clients that send the version they acted on get STALE_VERSION instead of
applying a move to a table that has already changed.

A Room contains:
    - A unique 6-character code for joining
    - The current Table snapshot and its version
    - The ids of CPU-controlled players
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from ai import Flip7AI, assign_profile, cleanup_room_profiles, get_profile, release_profile, take_cpu_turn
from constants import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH
from game import GameOptions, PlayerStatus, Table, TablePhase
from lobby import add_player, create_table, remove_player
from logging_config import player_id_var, room_code_var
from models.results import ActionResult, ErrorKind
from rounds import force_end_round
from turns import select_target, stay

logger = logging.getLogger(__name__)

TableOperation = Callable[[Table], ActionResult]


@dataclass
class Room:
    """
    A game room holding one Flip 7 table.

    Attributes:
        code: Room code for joining (e.g., "K7Q2ZD").
        table: Current authoritative table snapshot.
        version: Incremented on every accepted action.
        cpu_ids: Players controlled by the CPU policy.
        rng: Random source for shuffles (seed it for reproducible games).
        game_lock: asyncio.Lock serializing table mutations.
    """

    code: str
    table: Table
    version: int = 0
    cpu_ids: set[str] = field(default_factory=set)
    rng: random.Random = field(default_factory=random.Random)
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def apply(
        self,
        operation: TableOperation,
        player_id: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ActionResult:
        """
        Run an engine operation against the current table.

        A hit that fails with EMPTY_DECK ends the round instead of being
        reported, since the round cannot continue.

        Args:
            operation: Function taking the table and returning an ActionResult.
            player_id: Acting player, for log context.
            expected_version: Version the client acted on, if it sent one.

        Returns:
            The engine's result (STALE_VERSION if the table moved on).
        """
        async with self.game_lock:
            room_token = room_code_var.set(self.code)
            player_token = player_id_var.set(player_id)
            try:
                return self._apply_locked(operation, expected_version)
            finally:
                player_id_var.reset(player_token)
                room_code_var.reset(room_token)

    def _apply_locked(self, operation: TableOperation, expected_version: Optional[int]) -> ActionResult:
        if expected_version is not None and expected_version != self.version:
            logger.warning(f"Stale action: client at v{expected_version}, room at v{self.version}")
            return ActionResult.failure(
                ErrorKind.STALE_VERSION,
                f"Table changed (version {self.version}), refresh and retry",
            )

        result = operation(self.table)
        if not result.ok and result.error_kind == ErrorKind.EMPTY_DECK:
            result = force_end_round(self.table)

        if result.ok:
            self.table = result.table
            self.version += 1
        else:
            logger.warning(
                f"Rejected action: {result.message}",
                extra={"error_kind": result.error_kind.value},
            )
        return result

    # -------------------------------------------------------------------------
    # Players
    # -------------------------------------------------------------------------

    async def add_cpu_player(self, cpu_id: str) -> ActionResult:
        """Seat a CPU player with a random unused personality."""
        profile = assign_profile(cpu_id, self.code)
        if profile is None:
            return ActionResult.failure(ErrorKind.ROOM_FULL, "No CPU profiles left")

        result = await self.apply(lambda t: add_player(t, cpu_id, profile.name), cpu_id)
        if result.ok:
            self.cpu_ids.add(cpu_id)
        else:
            release_profile(cpu_id)
        return result

    async def remove_cpu_player(self, cpu_id: str) -> ActionResult:
        result = await self.apply(lambda t: remove_player(t, cpu_id), cpu_id)
        if result.ok:
            self.cpu_ids.discard(cpu_id)
            release_profile(cpu_id)
        return result

    def is_empty(self) -> bool:
        """Check if the room has no human players."""
        return all(pid in self.cpu_ids for pid in self.table.players)

    def player_list(self) -> list[dict]:
        """
        Get list of players for client display.

        Returns:
            List of dicts with id, name, is_host, is_cpu, and style (for CPUs).
        """
        result = []
        for p in self.table.players.values():
            player_data = {
                "id": p.id,
                "name": p.name,
                "is_host": p.is_host,
                "is_cpu": p.id in self.cpu_ids,
            }
            profile = get_profile(p.id) if p.id in self.cpu_ids else None
            if profile:
                player_data["style"] = profile.style
            result.append(player_data)
        return result

    # -------------------------------------------------------------------------
    # Turn automation
    # -------------------------------------------------------------------------

    async def handle_turn_timeout(self, player_id: str) -> ActionResult:
        """
        Act for a player who let their turn time out.

        Stays on their behalf, or picks a target for them if a Freeze or
        Flip Three is waiting on them. The caller owns the timer.
        """

        def timeout_action(table: Table) -> ActionResult:
            if table.current_turn != player_id:
                return ActionResult.failure(ErrorKind.NOT_YOUR_TURN, "Turn already moved on")
            pending = table.pending_action
            if pending is not None and pending.player_id == player_id:
                target_id = Flip7AI.choose_target(table, player_id, pending.action)
                return select_target(table, player_id, target_id or "")
            return stay(table, player_id)

        logger.info(f"Turn timeout for {player_id} in {self.code}")
        return await self.apply(timeout_action, player_id)

    def current_cpu(self) -> Optional[str]:
        """The CPU player whose turn it is, if any."""
        table = self.table
        if table.phase != TablePhase.PLAYING or table.current_turn not in self.cpu_ids:
            return None
        player = table.players[table.current_turn]
        return player.id if player.status == PlayerStatus.ACTIVE else None

    async def run_cpu_turns(self, max_actions: int = 200) -> list[ActionResult]:
        """
        Play CPU turns until a human is up or the round ends.

        Returns:
            Results of each CPU action, in order.
        """
        results = []
        for _ in range(max_actions):
            cpu_id = self.current_cpu()
            if cpu_id is None:
                break
            result = await self.apply(
                lambda t, pid=cpu_id: take_cpu_turn(t, pid, rng=self.rng), cpu_id,
            )
            results.append(result)
            if not result.ok:
                break
        return results


class RoomManager:
    """
    Manages all active game rooms.

    Provides room creation with unique codes, lookup, and cleanup.
    A single RoomManager instance is used by the embedding service.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        """Initialize an empty room manager."""
        self.rooms: dict[str, Room] = {}
        self.rng = rng or random.Random()

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique room code of letters and digits."""
        for _ in range(max_attempts):
            code = "".join(self.rng.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def create_room(
        self,
        host_id: str,
        host_name: str,
        options: Optional[GameOptions] = None,
    ) -> Room:
        """
        Create a new room with a unique code and its host seated.

        Returns:
            The newly created Room.
        """
        code = self._generate_code()
        room = Room(
            code=code,
            table=create_table(code, host_id, host_name, options),
            rng=random.Random(self.rng.getrandbits(64)),
        )
        self.rooms[code] = room
        return room

    def get_room(self, code: str) -> Optional[Room]:
        """
        Get a room by its code (case-insensitive).

        Args:
            code: The room code.

        Returns:
            The Room if found, None otherwise.
        """
        return self.rooms.get(code.upper())

    def remove_room(self, code: str) -> None:
        """
        Delete a room and release its CPU profiles.

        Args:
            code: The room code to remove.
        """
        if code in self.rooms:
            del self.rooms[code]
            cleanup_room_profiles(code)

    def find_player_room(self, player_id: str) -> Optional[Room]:
        """
        Find which room a player is in.

        Args:
            player_id: The player ID to search for.

        Returns:
            The Room containing the player, or None.
        """
        for room in self.rooms.values():
            if player_id in room.table.players:
                return room
        return None

    def cleanup_empty_rooms(self) -> list[str]:
        """Remove rooms with no human players left. Returns removed codes."""
        empty = [code for code, room in self.rooms.items() if room.is_empty()]
        for code in empty:
            self.remove_room(code)
        return empty
