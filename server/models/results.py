"""
Result and error types returned by engine entry points.

Public operations never raise for rule violations; they return an
ActionResult that is either a success carrying the new table and its
effects, or a failure carrying an ErrorKind. Internal helpers raise
EngineError, which the entry points convert with ActionResult.from_error().
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from game import Table
from models.effects import Effect


class ErrorKind(str, Enum):
    """Every way an engine or coordinator action can be rejected."""

    # Turn ownership / state preconditions
    ROOM_NOT_PLAYING = "room_not_playing"
    NOT_YOUR_TURN = "not_your_turn"
    PLAYER_NOT_ACTIVE = "player_not_active"
    PLAYER_NOT_FOUND = "player_not_found"
    TARGET_SELECTION_PENDING = "target_selection_pending"
    NO_PENDING_ACTION = "no_pending_action"

    # Deck / hand
    EMPTY_DECK = "empty_deck"
    INVALID_TARGET = "invalid_target"
    NO_DUPLICATE_FOUND = "no_duplicate_found"

    # Lobby
    ROOM_FULL = "room_full"
    DUPLICATE_PLAYER = "duplicate_player"
    GAME_IN_PROGRESS = "game_in_progress"
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    NOT_HOST = "not_host"
    ACTION_NOT_ALLOWED = "action_not_allowed"

    # Coordinator / storage boundary
    INVALID_MESSAGE = "invalid_message"
    STALE_VERSION = "stale_version"
    CONFLICT = "conflict"


class EngineError(Exception):
    """Base exception for rule violations raised inside the engine."""

    kind = ErrorKind.ACTION_NOT_ALLOWED

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        if kind is not None:
            self.kind = kind
        self.message = message
        super().__init__(f"[{self.kind.value}] {message}")


class EmptyDeckError(EngineError):
    """Raised when a card is dealt from an empty deck."""

    kind = ErrorKind.EMPTY_DECK


class NoDuplicateFoundError(EngineError):
    """Raised when Second Chance is applied to a hand that has not busted."""

    kind = ErrorKind.NO_DUPLICATE_FOUND


@dataclass
class ActionResult:
    """
    Outcome of one engine operation.

    Attributes:
        ok: Whether the action was applied.
        table: New table snapshot (None on failure).
        effects: What happened, in order (empty on failure).
        error_kind: Why the action was rejected (None on success).
        message: Human-readable summary.
    """

    ok: bool
    table: Optional[Table] = None
    effects: list[Effect] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, table: Table, effects: Optional[list[Effect]] = None, message: str = "") -> "ActionResult":
        return cls(ok=True, table=table, effects=list(effects or []), message=message)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ActionResult":
        return cls(ok=False, error_kind=kind, message=message)

    @classmethod
    def from_error(cls, error: EngineError) -> "ActionResult":
        return cls.failure(error.kind, error.message)

    @property
    def effect(self) -> Optional[Effect]:
        """The first effect, or None."""
        return self.effects[0] if self.effects else None

    def to_dict(self, for_player_id: Optional[str] = None) -> dict:
        """Serialize for a client; the table is reduced to its client view."""
        if not self.ok:
            return {
                "ok": False,
                "error_kind": self.error_kind.value if self.error_kind else None,
                "message": self.message,
            }
        return {
            "ok": True,
            "table": self.table.get_state(for_player_id) if self.table else None,
            "effects": [effect.to_dict() for effect in self.effects],
            "message": self.message,
        }
